"""Storefront web application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class StorefrontConfig:
    """Settings for the HTTP layer: secrets, admin bootstrap and public files."""

    secret_key: str
    jwt_secret: str
    jwt_ttl_hours: int
    admin_email: str
    admin_password: str
    host: str
    port: int
    project_root: Path

    @property
    def public_dir(self) -> Path:
        return self.project_root / "public"

    @property
    def images_dir(self) -> Path:
        return self.public_dir / "images"

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(hours=self.jwt_ttl_hours)

    @classmethod
    def load(cls) -> "StorefrontConfig":
        """Build settings from the environment (a project .env is read first)."""

        project_root = Path(__file__).resolve().parent
        load_dotenv(project_root / ".env")

        config = cls(
            secret_key=os.environ.get("SECRET_KEY", "dev_secret"),
            jwt_secret=os.environ.get("JWT_SECRET", "dev-insecure-secret"),
            jwt_ttl_hours=int(os.environ.get("JWT_TTL_HOURS", "168")),
            admin_email=os.environ.get("ADMIN_EMAIL", "admin@modanova.local"),
            admin_password=os.environ.get("ADMIN_PASSWORD", "admin123"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3000")),
            project_root=project_root,
        )
        config.images_dir.mkdir(parents=True, exist_ok=True)
        return config
