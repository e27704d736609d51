from .base import Base
from .category import Category
from .customer import Customer
from .order import ORDER_STATUSES, Order
from .order_item import OrderItem
from .product import Product
from .product_image import ProductImage

__all__ = [
    "Base",
    "Category",
    "Customer",
    "ORDER_STATUSES",
    "Order",
    "OrderItem",
    "Product",
    "ProductImage",
]
