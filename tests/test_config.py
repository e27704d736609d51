import pytest

from storefront.config import load_env, validate_currency, validate_log_level


def test_validate_currency():
    assert validate_currency(None) == "COP"
    assert validate_currency(" usd ") == "USD"
    with pytest.raises(ValueError):
        validate_currency("EURO")


def test_validate_log_level():
    assert validate_log_level("debug") == "DEBUG"
    with pytest.raises(ValueError):
        validate_log_level("loud")


def test_load_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp/x.db")
    monkeypatch.setenv("CURRENCY", "mxn")
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    config = load_env()

    assert config.database_url == "sqlite:///tmp/x.db"
    assert config.currency == "MXN"
    assert config.log_level == "INFO"
