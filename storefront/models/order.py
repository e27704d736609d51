from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, func
from .base import Base


ORDER_STATUSES = ("pending", "paid", "shipped", "delivered", "cancelled", "refunded")


class Order(Base):
    __tablename__ = "order"
    __table_args__ = (CheckConstraint("total >= 0", name="ck_order_total_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customer.id"), nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    currency = Column(String(3), nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
