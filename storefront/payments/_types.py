"""
Payment processor interface.

The core talks to the processor only through ``PaymentProcessor``:
open a hosted checkout session, read its status, expire it, and verify a
signed notification.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from kungfu import Result, Ok, Error

from storefront.domain import ShopError, Errors

# ═══════════════════════════════════════════════════════════════════════════════
# Event Types
# ═══════════════════════════════════════════════════════════════════════════════

SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"
INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"

# ═══════════════════════════════════════════════════════════════════════════════
# Values
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineItem:
    name: str
    unit_amount: Decimal
    quantity: int


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True, slots=True)
class SessionStatus:
    id: str
    paid: bool
    payment_intent_id: str | None = None


@dataclass(frozen=True, slots=True)
class ProcessorEvent:
    """A verified (or trusted) processor notification."""

    id: str
    type: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def object_id(self) -> str | None:
        value = self.data.get("id")
        return str(value) if value is not None else None


def parse_event(payload: bytes) -> Result[ProcessorEvent, ShopError]:
    """Decode a notification body without checking its signature."""
    try:
        raw = json.loads(payload)
    except (ValueError, UnicodeDecodeError):
        return Error(Errors.invalid_payload("Invalid payload"))

    match raw:
        case {"id": str(event_id), "type": str(event_type), **rest}:
            data = rest.get("data", {})
            obj = data.get("object", {}) if isinstance(data, dict) else {}
            if not isinstance(obj, dict):
                return Error(Errors.invalid_payload("Event object must be a mapping"))
            return Ok(ProcessorEvent(id=event_id, type=event_type, data=obj))
        case _:
            return Error(Errors.invalid_payload("Event must carry 'id' and 'type'"))


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentProcessor(Protocol):
    async def create_checkout_session(
        self,
        items: list[LineItem],
        metadata: dict[str, str],
    ) -> CheckoutSession:
        """Open a hosted checkout. Raises on processor failure."""
        ...

    async def retrieve_session(self, session_id: str) -> SessionStatus: ...

    async def expire_session(self, session_id: str) -> None: ...

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str | None,
        secret: str,
    ) -> Result[ProcessorEvent, ShopError]:
        """Ok(event) if authentic, Error(INVALID_SIGNATURE / INVALID_PAYLOAD) otherwise."""
        ...


__all__ = (
    "SESSION_COMPLETED",
    "SESSION_EXPIRED",
    "INTENT_SUCCEEDED",
    "INTENT_FAILED",
    "LineItem",
    "CheckoutSession",
    "SessionStatus",
    "ProcessorEvent",
    "parse_event",
    "PaymentProcessor",
)
