import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class AppConfig:
    database_url: str
    log_level: str
    currency: str


def validate_currency(value: Optional[str]) -> str:
    v = (value or "COP").strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_log_level(value: Optional[str]) -> str:
    v = (value or "INFO").strip().upper()
    if v not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
        raise ValueError(f"Invalid log level: {value}")
    return v


def load_env() -> AppConfig:
    """Build the store configuration from environment variables."""
    database_url = os.getenv("DATABASE_URL", "sqlite:///data/store.db")
    log_level = validate_log_level(os.getenv("LOG_LEVEL"))
    currency = validate_currency(os.getenv("CURRENCY"))
    return AppConfig(
        database_url=database_url,
        log_level=log_level,
        currency=currency,
    )
