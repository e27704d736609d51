"""Web-layer services for the storefront application."""

from .image_service import ProductImageService

__all__ = [
    "ProductImageService",
]
