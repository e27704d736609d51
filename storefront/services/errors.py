from typing import Optional


class StoreError(Exception):
    """Base class for errors raised by the storefront services."""


class ValidationError(StoreError, ValueError):
    pass


class CartValidationError(ValidationError):
    """Malformed cart, rejected before any store interaction."""


class NotFoundError(StoreError, LookupError):
    pass


class ConflictError(StoreError):
    pass


class AuthError(StoreError):
    pass


class OrderRejected(StoreError):
    """A business rule failed after the product rows were locked.

    `kind` is one of product_not_found, product_inactive, insufficient_stock.
    """

    def __init__(self, kind: str, product_id: int, message: Optional[str] = None) -> None:
        self.kind = kind
        self.product_id = product_id
        super().__init__(message or f"{kind.replace('_', ' ')}: product {product_id}")


class OrderFailed(StoreError):
    """Infrastructure failure while placing an order; the transaction was rolled back."""


class ForbiddenError(StoreError):
    """Authenticated, but the role does not allow the action."""
