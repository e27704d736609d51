"""Effective price resolution shared by catalog display and order placement."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def applied_discount_pct(
    product_discount_pct: Optional[Any],
    product_discount_active: Optional[bool],
    category_discount_pct: Optional[Any] = None,
    category_discount_active: Optional[bool] = None,
) -> Decimal:
    """Product discount wins over category discount; inactive or non-positive ones are skipped."""
    if product_discount_active and product_discount_pct is not None:
        pct = _as_decimal(product_discount_pct)
        if pct > 0:
            return pct
    if category_discount_active and category_discount_pct is not None:
        pct = _as_decimal(category_discount_pct)
        if pct > 0:
            return pct
    return Decimal("0")


def effective_price(
    base_price: Any,
    product_discount_pct: Optional[Any] = None,
    product_discount_active: Optional[bool] = False,
    category_discount_pct: Optional[Any] = None,
    category_discount_active: Optional[bool] = False,
) -> Decimal:
    pct = applied_discount_pct(
        product_discount_pct,
        product_discount_active,
        category_discount_pct,
        category_discount_active,
    )
    price = _as_decimal(base_price) * (1 - pct / HUNDRED)
    return price.quantize(CENTS, rounding=ROUND_HALF_UP)
