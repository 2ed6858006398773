"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from app.core.config import Settings, get_settings


def test_settings_loads_from_env(monkeypatch):
    """Settings load from environment variables."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://reader@db/profit")
    monkeypatch.setenv("DEFAULT_PAYMENT_FEE_PCT", "1.8")
    monkeypatch.setenv("CACHE_TTL_PNL_SEC", "0")
    monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com, https://admin.example.com")

    get_settings.cache_clear()

    s = Settings(_env_file=None)
    assert s.database_url == "postgresql://reader@db/profit"
    assert s.default_payment_fee_pct == 1.8
    assert s.cache_ttl_pnl_sec == 0
    assert s.cors_origin_list == ["https://app.example.com", "https://admin.example.com"]


def test_settings_defaults(monkeypatch):
    """Business defaults match the documented fallbacks."""
    monkeypatch.delenv("LOG_JSON", raising=False)

    s = Settings(_env_file=None)
    assert s.default_payment_fee_pct == 2.9
    assert s.default_payment_fee_fixed == 3.0
    assert s.corporate_tax_rate == 0.206
    assert s.breakeven_fee_estimate_pct == 0.03
    assert s.breakeven_shipping_estimate_pct == 0.05
    assert s.breakeven_roas_default == 2.0
    assert s.cogs_warning_threshold_pct == 80.0
    assert s.report_cache_enabled is True
    assert s.log_json is True


def test_settings_invalid_value(monkeypatch):
    """Invalid values raise a validation error."""
    monkeypatch.setenv("CACHE_TTL_DASHBOARD_SEC", "soon")

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    assert any(err["loc"] == ("cache_ttl_dashboard_sec",) for err in exc_info.value.errors())


def test_get_settings_wraps_validation_error(monkeypatch):
    """get_settings reports offending variables by name."""
    monkeypatch.setenv("CORPORATE_TAX_RATE", "a lot")
    get_settings.cache_clear()

    with pytest.raises(RuntimeError, match="CORPORATE_TAX_RATE"):
        get_settings()


def test_get_settings_is_cached():
    get_settings.cache_clear()
    assert get_settings() is get_settings()
