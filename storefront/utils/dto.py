from decimal import Decimal
from typing import Any, Dict, Optional

from ..services.pricing import applied_discount_pct, effective_price


def _money(value: Any) -> float:
    return float(value or 0)


def _pct(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_product_dto(row: Any, category: Any = None, image_url: Optional[str] = None) -> Dict:
    category_pct = getattr(category, "discount_pct", None)
    category_active = getattr(category, "discount_active", False)
    pct = applied_discount_pct(row.discount_pct, row.discount_active, category_pct, category_active)
    final = effective_price(row.price, row.discount_pct, row.discount_active, category_pct, category_active)
    return {
        "id": row.id,
        "sku": row.sku,
        "name": row.name,
        "description": row.description,
        "price": _money(row.price),
        "final_price": _money(final),
        "currency": row.currency,
        "stock": row.stock or 0,
        "is_active": bool(row.is_active),
        "category_id": row.category_id,
        "discount_pct": _pct(row.discount_pct),
        "discount_active": bool(row.discount_active),
        "applied_discount_pct": _pct(pct),
        "image_url": image_url,
    }


def to_category_dto(row: Any) -> Dict:
    return {
        "id": row.id,
        "name": row.name,
        "slug": row.slug,
        "description": row.description,
        "is_active": bool(row.is_active),
        "discount_pct": _pct(row.discount_pct),
        "discount_active": bool(row.discount_active),
    }


def to_customer_dto(row: Any) -> Dict:
    return {
        "id": row.id,
        "first_name": row.first_name,
        "last_name": row.last_name,
        "email": row.email,
        "phone": row.phone,
        "role": row.role or "customer",
    }


def to_order_item_dto(row: Any) -> Dict:
    unit_price = Decimal(str(row.unit_price))
    return {
        "product_id": row.product_id,
        "sku": row.sku,
        "product_name": row.product_name,
        "unit_price": _money(unit_price),
        "quantity": row.quantity,
        "line_total": _money(unit_price * row.quantity),
    }


def to_order_dto(row: Any, total_calculated: Any = None) -> Dict:
    return {
        "id": row.id,
        "customer_id": row.customer_id,
        "status": row.status,
        "currency": row.currency,
        "total": _money(row.total),
        "total_calculated": _money(row.total if total_calculated is None else total_calculated),
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }
