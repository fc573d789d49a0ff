"""
Config — deployment settings.

    from storefront.config import Settings

    settings = Settings.from_env()
    settings = Settings(payment_style=PaymentStyle.REDIRECT, webhook_secret="whsec_...")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Style
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentStyle(Enum):
    """
    How checkout creates the payment.

    OFFLINE: pending payment, settled later by an operator.
    REDIRECT: pending payment plus a hosted checkout session at the processor.
    """

    OFFLINE = "offline"
    REDIRECT = "redirect"


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///:memory:"
    payment_style: PaymentStyle = PaymentStyle.OFFLINE
    stripe_secret_key: str | None = None
    # Unset means webhook bodies are trusted as-is
    webhook_secret: str | None = None
    frontend_url: str = "http://localhost:3000"
    currency: str = "usd"
    tax_rate: Decimal = Decimal("0.10")
    shipping_flat: Decimal = Decimal("0.00")
    stale_order_days: int = 7
    admin_key: str = "change-me"
    event_ttl_hours: int = 72
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def success_url(self) -> str:
        return f"{self.frontend_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return f"{self.frontend_url}/checkout/cancel"

    def with_(self, **changes: object) -> Settings:
        """Copy with overrides. Handy in tests."""
        return replace(self, **changes)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, prefix: str = "STOREFRONT_") -> Settings:
        """Read settings from ``STOREFRONT_*`` environment variables."""

        def env(name: str) -> str | None:
            return os.getenv(prefix + name)

        defaults = cls()
        return cls(
            database_url=env("DATABASE_URL") or defaults.database_url,
            payment_style=PaymentStyle(
                (env("PAYMENT_STYLE") or defaults.payment_style.value).lower()
            ),
            stripe_secret_key=env("STRIPE_SECRET_KEY"),
            webhook_secret=env("STRIPE_WEBHOOK_SECRET") or None,
            frontend_url=env("FRONTEND_URL") or defaults.frontend_url,
            currency=(env("CURRENCY") or defaults.currency).lower(),
            tax_rate=Decimal(env("TAX_RATE") or defaults.tax_rate),
            shipping_flat=Decimal(env("SHIPPING_FLAT") or defaults.shipping_flat),
            stale_order_days=int(env("STALE_ORDER_DAYS") or defaults.stale_order_days),
            admin_key=env("ADMIN_KEY") or defaults.admin_key,
            event_ttl_hours=int(env("EVENT_TTL_HOURS") or defaults.event_ttl_hours),
            log_level=(env("LOG_LEVEL") or defaults.log_level).upper(),
            log_json=(env("LOG_JSON") or "1") not in ("0", "false", "no"),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("PaymentStyle", "Settings")
