"""
Settings, read from the environment with the `CANDLECART_` prefix.

    CANDLECART_DATABASE_URL=sqlite+aiosqlite:///shop.db
    CANDLECART_TAX_RATE=0.0825
    CANDLECART_SHIPPING_RATES='{"standard": "5.99", "express": "12.99", "overnight": "24.99"}'
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ShopSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CANDLECART_", env_file=".env", extra="ignore")

    database_url: str | None = None
    """Unset keeps everything in memory."""

    currency: str = "usd"
    tax_rate: Decimal = Decimal("0.08")
    tax_rates: dict[str, Decimal] = Field(default_factory=dict)
    """Per-state overrides of `tax_rate`, keyed by the shipping address state."""

    free_shipping_threshold: Decimal = Decimal("50")
    shipping_rates: dict[str, Decimal] = Field(
        default_factory=lambda: {"standard": Decimal("5.99"), "express": Decimal("12.99")}
    )
    guest_cart_ttl_days: int = 7
    checkout_idle_minutes: int = 60
    """Checkout sessions untouched for this long are dropped."""

    gateway_secret_key: str | None = None
    """Unset uses the in-memory gateway."""
    gateway_base_url: str = "https://api.stripe.com/v1"
    gateway_timeout: float = 10.0
    gateway_retries: int = 3

    webhook_secret: str = "whsec_dev"
    webhook_tolerance: int = 300

    admin_token: str = "dev-admin-token"
    alternate_payment_methods: list[str] = Field(default_factory=lambda: ["paypal"])

    log_level: str = "INFO"

    @property
    def guest_cart_ttl(self) -> timedelta:
        return timedelta(days=self.guest_cart_ttl_days)

    @property
    def checkout_idle_ttl(self) -> timedelta:
        return timedelta(minutes=self.checkout_idle_minutes)


__all__ = ("ShopSettings",)
