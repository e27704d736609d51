"""Product image upload storage."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Tuple
from uuid import uuid4

from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage

from storefront.services.errors import ValidationError


class ProductImageService:
    """Stores uploaded product images under the public images directory."""

    def __init__(self, images_dir: Path, url_prefix: str = "/images") -> None:
        self._images_dir = images_dir
        self._url_prefix = url_prefix.rstrip("/")
        self._images_dir.mkdir(parents=True, exist_ok=True)

    def save_product_image(self, uploaded: FileStorage) -> Tuple[str, str]:
        """Save an uploaded image, returning (file path, public url)."""

        self._validate_upload(uploaded)
        filename = self._safe_filename(uploaded.filename)
        target_path = self._images_dir / filename
        self._save_image(uploaded, target_path)
        return str(target_path), f"{self._url_prefix}/{filename}"

    def _validate_upload(self, uploaded: FileStorage) -> None:
        if uploaded is None or uploaded.filename is None or not uploaded.filename.strip():
            raise ValidationError("no image was uploaded")
        if uploaded.mimetype and not uploaded.mimetype.startswith("image/"):
            raise ValidationError("only images are allowed")

    def _safe_filename(self, original: str) -> str:
        stem = "".join(ch for ch in Path(original).stem.lower() if ch.isalnum() or ch in "-_")[:16]
        unique = uuid4().hex[:12]
        return f"{stem or 'product'}_{unique}.jpg"

    def _save_image(self, uploaded: FileStorage, target_path: Path) -> None:
        binary = uploaded.read()
        if not binary:
            raise ValidationError("the uploaded image is empty")

        try:
            with Image.open(BytesIO(binary)) as image:
                rgb = image.convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError("only images are allowed") from exc
        target_path.parent.mkdir(parents=True, exist_ok=True)
        rgb.save(target_path, format="JPEG", quality=92)
