from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..services.errors import ValidationError

# largest value a store INTEGER column can bind
MAX_STORE_INT = 2**63 - 1


def as_positive_int(value: Any) -> Optional[int]:
    """Return value as an int in 1..MAX_STORE_INT, or None otherwise."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        n = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        n = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        n = int(value.strip())
    else:
        return None
    return n if 0 < n <= MAX_STORE_INT else None


def ensure_positive_int(value: Any, field: str) -> int:
    n = as_positive_int(value)
    if n is None:
        raise ValidationError(f"{field} must be a positive integer")
    return n


def ensure_non_negative_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be >= 0")
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be >= 0")
    if n > MAX_STORE_INT:
        raise ValidationError(f"{field} is too large")
    if n < 0 or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be >= 0")
    return n


def ensure_price(value: Any, field: str = "price") -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"invalid {field}")
    if not price.is_finite() or price < 0:
        raise ValidationError(f"invalid {field}")
    return price


def parse_discount_pct(value: Any, field: str = "discount_pct") -> Optional[Decimal]:
    """Blank means no discount; anything else must lie in 0-100."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"invalid {field} (0-100)")
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"invalid {field} (0-100)")
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise ValidationError(f"invalid {field} (0-100)")
    return pct


def parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def require_text(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
