from typing import Any, Dict, List

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..models.category import Category
from ..utils.dto import to_category_dto
from ..utils.validators import optional_text, parse_discount_pct, parse_flag, require_text
from .errors import ConflictError, NotFoundError, ValidationError
from .logging import log_event


def _discount_pair(percentage: Any, activate: Any, *, field: str) -> tuple:
    """Normalize a (pct, active) pair so pct is only stored while active."""
    if not parse_flag(activate):
        return None, False
    pct = parse_discount_pct(percentage, field)
    if pct is None:
        raise ValidationError(f"invalid {field} (0-100)")
    return pct, True


class CategoryService:
    """Category CRUD and category-level discounts."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def list_categories(self) -> List[Dict]:
        with self._session_factory() as session:
            rows = session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()
            return [to_category_dto(c) for c in rows]

    def create_category(self, payload: Dict[str, Any]) -> int:
        fields = self._category_fields(payload)
        try:
            with self._session_factory() as session:
                category = Category(**fields)
                session.add(category)
                session.flush()
                category_id = category.id
        except IntegrityError as exc:
            raise ConflictError("duplicate slug") from exc
        log_event("info", "category.created", category_id=category_id, slug=fields["slug"])
        return category_id

    def update_category(self, category_id: int, payload: Dict[str, Any]) -> int:
        fields = self._category_fields(payload)
        try:
            with self._session_factory() as session:
                category = session.get(Category, category_id)
                if category is None:
                    raise NotFoundError("category not found")
                for key, value in fields.items():
                    setattr(category, key, value)
                session.flush()
        except IntegrityError as exc:
            raise ConflictError("duplicate slug") from exc
        return category_id

    def set_category_discount(self, category_id: int, percentage: Any, activate: Any) -> int:
        """Discounts are applied at read time, products are not rewritten."""
        pct, active = _discount_pair(percentage, activate, field="percentage")
        with self._session_factory() as session:
            category = session.get(Category, category_id)
            if category is None:
                raise NotFoundError("category not found")
            category.discount_pct = pct
            category.discount_active = active
        log_event("info", "category.discount", category_id=category_id, percentage=pct, active=active)
        return category_id

    def apply_discount_to_all_categories(self, percentage: Any, activate: Any) -> int:
        """Set (or clear) the discount of EVERY category row; returns rows updated."""
        pct, active = _discount_pair(percentage, activate, field="percentage")
        with self._session_factory() as session:
            result = session.execute(
                update(Category)
                .values(discount_pct=pct, discount_active=active, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
        log_event("info", "category.bulk_discount", percentage=pct, active=active, updated=updated)
        return updated

    @staticmethod
    def _category_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = payload or {}
        pct, active = _discount_pair(
            payload.get("discount_pct"), payload.get("discount_active", False), field="discount_pct"
        )
        return {
            "name": require_text(payload.get("name"), "name"),
            "slug": require_text(payload.get("slug"), "slug"),
            "description": optional_text(payload.get("description")),
            "is_active": parse_flag(payload.get("is_active", True)),
            "discount_pct": pct,
            "discount_active": active,
        }
