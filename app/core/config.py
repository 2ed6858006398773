"""Configuration management with pydantic-settings.

Provides type-safe configuration with environment variable validation.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Database ===
    database_url: str = Field(
        "sqlite:///./profit_dashboard.db",
        description="Database URL of the synced storefront/ad-platform snapshot",
    )

    # === Deployment ===
    environment: str = Field("production", description="Deployment environment label for metrics")

    # === Logging ===
    log_level: str = Field("INFO", description="Root log level")
    log_json: bool = Field(True, description="Emit JSON structured logs")
    log_file_path: str | None = Field(None, description="Rotating JSON log file (None = stdout only)")

    # === Business defaults ===
    default_currency: str = Field("SEK", description="Currency used when a store has none")
    default_payment_fee_pct: float = Field(
        2.9, description="Fallback gateway percentage fee (percent units)"
    )
    default_payment_fee_fixed: float = Field(3.0, description="Fallback gateway fixed fee per transaction")
    corporate_tax_rate: float = Field(
        0.206, description="Corporate tax rate for the informational tax estimate"
    )

    # === Break-even ROAS estimates (customer economics) ===
    breakeven_fee_estimate_pct: float = Field(0.03, description="Estimated payment fees share of revenue")
    breakeven_shipping_estimate_pct: float = Field(
        0.05, description="Estimated shipping cost share of revenue"
    )
    breakeven_roas_default: float = Field(2.0, description="Break-even ROAS when it cannot be derived")

    # === Data quality ===
    cogs_warning_threshold_pct: float = Field(
        80.0, description="COGS match rate below which the completeness warning becomes an error"
    )

    # === Report cache ===
    redis_url: str = Field("redis://localhost:6379/0", description="Redis holding cached reports")
    report_cache_enabled: bool = Field(True, description="Memoize computed reports in Redis")
    cache_ttl_dashboard_sec: int = Field(60, description="Dashboard summary cache TTL")
    cache_ttl_pnl_sec: int = Field(120, description="P&L report cache TTL")
    cache_ttl_customers_sec: int = Field(120, description="Customer metrics cache TTL")
    cache_ttl_products_sec: int = Field(120, description="Product profitability cache TTL")
    cache_ttl_channels_sec: int = Field(120, description="Channel attribution cache TTL")

    # === Web ===
    cors_origins: str = Field("*", description="Comma-separated allowed CORS origins")

    @property
    def cors_origin_list(self) -> list[str]:
        """Get list of allowed CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        RuntimeError: If environment variables hold invalid values.

    """
    try:
        return Settings()
    except ValidationError as e:
        invalid_fields = [str(error["loc"][0]).upper() for error in e.errors() if error["loc"]]

        error_msg = (
            f"Configuration error: Invalid environment variables: "
            f"{', '.join(invalid_fields)}\n"
            f"Please fix them in .env file or the process environment.\n"
            f"See .env.example for reference."
        )
        raise RuntimeError(error_msg) from e


__all__ = ["Settings", "get_settings"]
