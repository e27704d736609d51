from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from .base import Base


class OrderItem(Base):
    """Snapshot of a product at purchase time; later product edits do not touch it."""

    __tablename__ = "order_item"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("order.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=False)
    sku = Column(String(128), nullable=False)
    product_name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
