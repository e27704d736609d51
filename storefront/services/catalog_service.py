from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.category import Category
from ..models.product import Product
from ..models.product_image import ProductImage
from ..utils.dto import to_product_dto
from ..utils.validators import (
    ensure_non_negative_int,
    ensure_positive_int,
    ensure_price,
    optional_text,
    parse_discount_pct,
    parse_flag,
    require_text,
)
from .errors import ConflictError, NotFoundError, ValidationError
from .logging import log_event


def _integrity_conflict(exc: IntegrityError) -> ConflictError:
    """Only a unique-SKU violation is reported as a duplicate."""
    if "sku" in str(exc.orig).lower():
        return ConflictError("duplicate SKU")
    return ConflictError("product conflicts with existing data")


class CatalogService:
    """Catalog querying and product administration.

    Responsibilities:
    - List products with their display image and effective price
    - Get single product detail
    - Create/update/deactivate products (admin)
    - Bulk discount over every product row (admin)
    """

    def __init__(self, session_factory, *, currency: str) -> None:
        self._session_factory = session_factory
        self._currency = currency

    def list_products(self, *, include_inactive: bool = False, category_id: Optional[int] = None) -> List[Dict]:
        with self._session_factory() as session:
            q = session.query(Product, Category).outerjoin(Category, Category.id == Product.category_id)
            if not include_inactive:
                q = q.filter(Product.is_active.is_(True))
            if category_id:
                q = q.filter(Product.category_id == category_id)
            rows = q.order_by(Product.name.asc(), Product.id.asc()).all()
            images = self._display_images(session, [p.id for p, _ in rows])
            return [to_product_dto(p, c, images.get(p.id)) for p, c in rows]

    def get_product(self, product_id: int) -> Dict:
        with self._session_factory() as session:
            row = (
                session.query(Product, Category)
                .outerjoin(Category, Category.id == Product.category_id)
                .filter(Product.id == product_id)
                .first()
            )
            if row is None:
                raise NotFoundError("product not found")
            product, category = row
            images = self._display_images(session, [product.id])
            return to_product_dto(product, category, images.get(product.id))

    def create_product(self, payload: Dict[str, Any]) -> int:
        fields = self._product_fields(payload, require_all=False)
        image_url = optional_text(payload.get("image_url"))
        try:
            with self._session_factory() as session:
                self._ensure_category(session, fields["category_id"])
                product = Product(**fields)
                session.add(product)
                session.flush()
                if image_url:
                    session.add(
                        ProductImage(
                            product_id=product.id,
                            filename=f"{product.sku}.url",
                            url=image_url,
                            sort_order=0,
                            is_primary=True,
                        )
                    )
                product_id = product.id
        except IntegrityError as exc:
            raise _integrity_conflict(exc) from exc
        log_event("info", "catalog.product_created", product_id=product_id, sku=fields["sku"])
        return product_id

    def update_product(self, product_id: int, payload: Dict[str, Any]) -> int:
        fields = self._product_fields(payload, require_all=True)
        try:
            with self._session_factory() as session:
                product = session.get(Product, product_id)
                if product is None:
                    raise NotFoundError("product not found")
                self._ensure_category(session, fields["category_id"])
                for key, value in fields.items():
                    setattr(product, key, value)
                if "image_url" in payload:
                    # an explicit empty value clears the primary image url
                    image_url = optional_text(payload.get("image_url"))
                    primary = (
                        session.query(ProductImage)
                        .filter(ProductImage.product_id == product_id, ProductImage.is_primary.is_(True))
                        .first()
                    )
                    if primary is not None:
                        primary.url = image_url
                    elif image_url:
                        session.add(
                            ProductImage(
                                product_id=product_id,
                                filename=f"{product.sku}.url",
                                url=image_url,
                                sort_order=0,
                                is_primary=True,
                            )
                        )
                session.flush()
        except IntegrityError as exc:
            raise _integrity_conflict(exc) from exc
        log_event("info", "catalog.product_updated", product_id=product_id)
        return product_id

    def deactivate_product(self, product_id: int) -> None:
        """Products are never deleted; they just stop being sold."""
        with self._session_factory() as session:
            product = session.get(Product, product_id)
            if product is None:
                raise NotFoundError("product not found")
            product.is_active = False
        log_event("info", "catalog.product_deactivated", product_id=product_id)

    def apply_discount_to_all_products(self, percentage: Any, activate: Any) -> int:
        """Set (or clear) the own discount of EVERY product row, active or not.

        This is a deliberate administrative bulk action; returns rows updated.
        """
        active = parse_flag(activate)
        pct = parse_discount_pct(percentage, "percentage") if active else None
        if active and pct is None:
            raise ValidationError("invalid percentage (0-100)")
        with self._session_factory() as session:
            result = session.execute(
                update(Product)
                .values(discount_pct=pct, discount_active=active, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
        log_event("info", "catalog.bulk_discount", percentage=pct, active=active, updated=updated)
        return updated

    def _product_fields(self, payload: Dict[str, Any], *, require_all: bool) -> Dict[str, Any]:
        payload = payload or {}
        if payload.get("price") is None:
            raise ValidationError("sku, name and price are required")
        if require_all and (payload.get("stock") is None or payload.get("is_active") is None):
            raise ValidationError("sku, name, price, stock and is_active are required")
        category_id = payload.get("category_id")
        return {
            "sku": require_text(payload.get("sku"), "sku"),
            "name": require_text(payload.get("name"), "name"),
            "description": optional_text(payload.get("description")),
            "price": ensure_price(payload.get("price")),
            "currency": (optional_text(payload.get("currency")) or self._currency).upper(),
            "stock": ensure_non_negative_int(payload.get("stock", 0), "stock"),
            "is_active": parse_flag(payload.get("is_active", True)),
            "category_id": ensure_positive_int(category_id, "category_id") if category_id else None,
            "discount_pct": parse_discount_pct(payload.get("discount_pct")),
            "discount_active": parse_flag(payload.get("discount_active", False)),
        }

    @staticmethod
    def _ensure_category(session: Session, category_id: Optional[int]) -> None:
        if category_id is not None and session.get(Category, category_id) is None:
            raise ValidationError("category not found")

    @staticmethod
    def _display_images(session: Session, product_ids: List[int]) -> Dict[int, Optional[str]]:
        """Primary image url per product, falling back to the lowest-id image."""
        if not product_ids:
            return {}
        rows = (
            session.query(ProductImage)
            .filter(ProductImage.product_id.in_(product_ids))
            .order_by(ProductImage.product_id, ProductImage.id)
            .all()
        )
        chosen: Dict[int, ProductImage] = {}
        for img in rows:
            current = chosen.get(img.product_id)
            if current is None or (img.is_primary and not current.is_primary):
                chosen[img.product_id] = img
        return {pid: img.url for pid, img in chosen.items()}
