"""
Domain types — statuses and immutable snapshots.

Snapshots are built from rows inside a transaction and handed to callers.
Rows never leave the transaction that loaded them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

CENT = Decimal("0.01")


def money(value: Decimal | int | str) -> Decimal:
    """Quantize to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    return int(money(value) * 100)


# ═══════════════════════════════════════════════════════════════════════════════
# Statuses
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    OFFLINE = "offline"
    MANUAL = "manual"
    STRIPE = "stripe"


# Order states that imply a settled payment
SETTLED_ORDER_STATES = frozenset({
    OrderStatus.PROCESSING,
    OrderStatus.PAID,
    OrderStatus.SHIPPED,
    OrderStatus.COMPLETED,
})


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Snapshots
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    available_stock: int
    is_active: bool

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    @property
    def in_stock(self) -> bool:
        return self.is_active and self.available_stock >= self.quantity


@dataclass(frozen=True, slots=True)
class CartView:
    id: int
    user_id: int
    lines: tuple[CartLine, ...]

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> Decimal:
        return money(sum((line.line_total for line in self.lines), Decimal(0)))


@dataclass(frozen=True, slots=True)
class CheckoutSummary:
    """Read-only preview of what checkout would charge."""

    cart_id: int
    lines: tuple[CartLine, ...]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal

    @property
    def all_in_stock(self) -> bool:
        return all(line.in_stock for line in self.lines)


# ═══════════════════════════════════════════════════════════════════════════════
# Order / Payment Snapshots
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderItemView:
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


@dataclass(frozen=True, slots=True)
class PaymentView:
    id: int
    order_id: int
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    checkout_session_id: str | None
    payment_intent_id: str | None
    checkout_url: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class OrderView:
    id: int
    user_id: int
    total: Decimal
    status: OrderStatus
    notes: str | None
    items: tuple[OrderItemView, ...]
    payment: PaymentView | None
    created_at: datetime
    updated_at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OfflineCheckout:
    """Order placed; payment awaits an operator."""

    order: OrderView
    payment: PaymentView


@dataclass(frozen=True, slots=True)
class RedirectCheckout:
    """Order placed; the customer pays at ``payment_url``."""

    order_id: int
    payment_url: str
    total: Decimal


type CheckoutResult = OfflineCheckout | RedirectCheckout


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CENT",
    "money",
    "to_cents",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    "SETTLED_ORDER_STATES",
    "CartLine",
    "CartView",
    "CheckoutSummary",
    "OrderItemView",
    "PaymentView",
    "OrderView",
    "OfflineCheckout",
    "RedirectCheckout",
    "CheckoutResult",
)
