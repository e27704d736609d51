from collections import OrderedDict
from decimal import Decimal
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from ..models.category import Category
from ..models.customer import Customer
from ..models.order import ORDER_STATUSES, Order
from ..models.order_item import OrderItem
from ..models.product import Product
from ..utils.dto import to_order_dto, to_order_item_dto
from ..utils.validators import as_positive_int
from .errors import CartValidationError, NotFoundError, OrderFailed, OrderRejected, ValidationError
from .logging import log_event
from .pricing import effective_price

SessionFactory = Callable[[], ContextManager[Session]]

# status filter aliases accepted by the admin listing
STATUS_ALIASES = {
    "processing": ("paid", "shipped"),
    "completed": ("delivered",),
    "finished": ("delivered",),
}


def normalize_cart(items: Any) -> "OrderedDict[int, int]":
    """Validate a cart without touching the store.

    Returns product_id -> quantity in first-seen order; repeated product ids
    are merged so the stock check sees the full requested quantity.
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise CartValidationError("cart is empty or invalid")
    cart: "OrderedDict[int, int]" = OrderedDict()
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise CartValidationError(f"invalid cart item at line {position}")
        product_id = as_positive_int(item.get("product_id"))
        quantity = as_positive_int(item.get("quantity"))
        if product_id is None or quantity is None:
            raise CartValidationError(f"invalid cart item at line {position}")
        cart[product_id] = cart.get(product_id, 0) + quantity
    return cart


def expand_statuses(raw: Optional[Iterable[str]]) -> List[str]:
    statuses: List[str] = []
    for value in raw or []:
        key = (value or "").strip().lower()
        if not key:
            continue
        for status in STATUS_ALIASES.get(key, (key,)):
            if status not in statuses:
                statuses.append(status)
    return statuses


class OrderService:
    """Order placement and retrieval backed by DB."""

    def __init__(self, session_factory: SessionFactory, *, currency: str) -> None:
        self._session_factory = session_factory
        self._currency = currency

    def place_order(self, customer_id: int, items: Sequence[Dict[str, Any]]) -> Dict:
        """Create a pending order from cart items as one all-or-nothing transaction.

        Product rows are locked before they are validated, so two checkouts
        racing for the last unit cannot both pass the stock check.
        """
        cart = normalize_cart(items)
        if as_positive_int(customer_id) is None:
            raise CartValidationError("invalid customer")

        try:
            with self._session_factory() as session:
                rows = self._lock_products(session, list(cart))

                for product_id, quantity in cart.items():
                    row = rows.get(product_id)
                    if row is None:
                        raise OrderRejected("product_not_found", product_id)
                    product = row[0]
                    if not product.is_active:
                        raise OrderRejected("product_inactive", product_id)
                    if product.stock < quantity:
                        raise OrderRejected("insufficient_stock", product_id)

                order = Order(
                    customer_id=int(customer_id),
                    status="pending",
                    currency=self._currency,
                    total=Decimal("0"),
                )
                session.add(order)
                session.flush()

                total = Decimal("0")
                for product_id, quantity in cart.items():
                    product, category_pct, category_active = rows[product_id]
                    unit_price = effective_price(
                        product.price,
                        product.discount_pct,
                        product.discount_active,
                        category_pct,
                        category_active,
                    )
                    session.add(
                        OrderItem(
                            order_id=order.id,
                            product_id=product.id,
                            sku=product.sku,
                            product_name=product.name,
                            unit_price=unit_price,
                            quantity=quantity,
                        )
                    )
                    session.execute(
                        update(Product)
                        .where(Product.id == product_id)
                        .values(stock=Product.stock - quantity)
                    )
                    total += unit_price * quantity

                order.total = total
                session.flush()
                order_id = order.id
        except OrderRejected as exc:
            log_event("warning", "order.rejected", customer_id=customer_id, kind=exc.kind, product_id=exc.product_id)
            raise
        except Exception as exc:
            # driver errors (e.g. OverflowError while binding) are not SQLAlchemyErrors
            log_event("error", "order.failed", customer_id=customer_id, error=repr(exc))
            raise OrderFailed("could not place the order") from exc

        log_event("info", "order.created", order_id=order_id, customer_id=customer_id, items=len(cart), total=float(total))
        return {"order_id": order_id, "total": float(total), "currency": self._currency}

    @staticmethod
    def _lock_products(session: Session, product_ids: List[int]) -> Dict[int, tuple]:
        # fixed lock order keeps concurrent checkouts from deadlocking each other
        stmt = (
            select(Product, Category.discount_pct, Category.discount_active)
            .outerjoin(Category, Category.id == Product.category_id)
            .where(Product.id.in_(product_ids))
            .order_by(Product.id)
            .with_for_update(of=Product)
        )
        return {product.id: (product, pct, active) for product, pct, active in session.execute(stmt).all()}

    def get_order(self, order_id: int) -> Dict:
        with self._session_factory() as session:
            order = session.get(Order, order_id)
            if order is None:
                return {}
            data = self._with_totals(session, [order])[0]
            data["items"] = self._items_by_order(session, [order.id])[order.id]
            return data

    def list_customer_orders(self, customer_id: int, *, include_items: bool = False) -> List[Dict]:
        with self._session_factory() as session:
            orders = (
                session.query(Order)
                .filter(Order.customer_id == customer_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .all()
            )
            result = self._with_totals(session, orders)
            if include_items and orders:
                items = self._items_by_order(session, [o.id for o in orders])
                for data in result:
                    data["items"] = items[data["id"]]
            return result

    def list_orders(
        self,
        *,
        statuses: Optional[Iterable[str]] = None,
        query: Optional[str] = None,
        include_items: bool = False,
    ) -> List[Dict]:
        """Admin listing with customer details, optional status and free-text filters."""
        wanted = expand_statuses(statuses)
        with self._session_factory() as session:
            q = session.query(Order, Customer).join(Customer, Customer.id == Order.customer_id)
            if wanted:
                q = q.filter(Order.status.in_(wanted))
            if query and query.strip():
                like = f"%{query.strip().lower()}%"
                q = q.filter(
                    or_(
                        func.lower(Customer.first_name).like(like),
                        func.lower(Customer.last_name).like(like),
                        func.lower(Customer.email).like(like),
                        func.lower(Customer.first_name + " " + Customer.last_name).like(like),
                    )
                )
            rows = q.order_by(Order.created_at.desc(), Order.id.desc()).all()
            orders = [o for o, _ in rows]
            result = self._with_totals(session, orders)
            for data, (_, customer) in zip(result, rows):
                data["customer_first_name"] = customer.first_name
                data["customer_last_name"] = customer.last_name
                data["customer_email"] = customer.email
            if include_items and orders:
                items = self._items_by_order(session, [o.id for o in orders])
                for data in result:
                    data["items"] = items[data["id"]]
            return result

    def update_status(self, order_id: int, status: str) -> Dict:
        status = (status or "").strip().lower()
        if status not in ORDER_STATUSES:
            raise ValidationError("invalid status")
        with self._session_factory() as session:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFoundError("order not found")
            previous = order.status
            order.status = status
            session.flush()
        log_event("info", "order.status_changed", order_id=order_id, previous=previous, status=status)
        return {"id": order_id, "status": status}

    @staticmethod
    def _with_totals(session: Session, orders: List[Order]) -> List[Dict]:
        if not orders:
            return []
        line_total = func.sum(OrderItem.unit_price * OrderItem.quantity)
        sums = dict(
            session.query(OrderItem.order_id, line_total)
            .filter(OrderItem.order_id.in_([o.id for o in orders]))
            .group_by(OrderItem.order_id)
            .all()
        )
        return [to_order_dto(o, sums.get(o.id, 0)) for o in orders]

    @staticmethod
    def _items_by_order(session: Session, order_ids: List[int]) -> Dict[int, List[Dict]]:
        grouped: Dict[int, List[Dict]] = {oid: [] for oid in order_ids}
        rows = (
            session.query(OrderItem)
            .filter(OrderItem.order_id.in_(order_ids))
            .order_by(OrderItem.order_id.asc(), OrderItem.id.asc())
            .all()
        )
        for it in rows:
            grouped[it.order_id].append(to_order_item_dto(it))
        return grouped
