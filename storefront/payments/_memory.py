"""
In-memory processor — for tests and local runs.

Signatures use the same ``t=<unix>,v1=<hex hmac-sha256>`` header format as
the real processor, computed over ``f"{t}.{payload}"``.
"""

from __future__ import annotations

import hashlib
import hmac
import itertools
import time
from dataclasses import dataclass, field

from kungfu import Result, Error

from storefront.domain import ShopError, Errors
from storefront.payments._types import (
    CheckoutSession,
    LineItem,
    ProcessorEvent,
    SessionStatus,
    parse_event,
)


class ProcessorUnavailable(Exception):
    pass


@dataclass(slots=True)
class _Session:
    id: str
    items: list[LineItem]
    metadata: dict[str, str]
    paid: bool = False
    expired: bool = False
    payment_intent_id: str | None = None


@dataclass
class InMemoryProcessor:
    """
    Example:
        processor = InMemoryProcessor()
        session = await processor.create_checkout_session(items, {"order_id": "1"})
        processor.pay(session.id)
        header = processor.sign(payload, "whsec_test")
    """

    base_url: str = "https://checkout.test/pay"
    tolerance_seconds: int = 300
    fail_create: bool = False
    sessions: dict[str, _Session] = field(default_factory=dict)
    expired: list[str] = field(default_factory=list)
    _ids: itertools.count[int] = field(default_factory=lambda: itertools.count(1))

    async def create_checkout_session(
        self,
        items: list[LineItem],
        metadata: dict[str, str],
    ) -> CheckoutSession:
        if self.fail_create:
            raise ProcessorUnavailable("processor unavailable")
        session_id = f"cs_test_{next(self._ids)}"
        self.sessions[session_id] = _Session(session_id, list(items), dict(metadata))
        return CheckoutSession(id=session_id, url=f"{self.base_url}/{session_id}")

    async def retrieve_session(self, session_id: str) -> SessionStatus:
        session = self.sessions.get(session_id)
        if session is None:
            raise ProcessorUnavailable(f"No such session: {session_id}")
        return SessionStatus(
            id=session.id,
            paid=session.paid,
            payment_intent_id=session.payment_intent_id,
        )

    async def expire_session(self, session_id: str) -> None:
        session = self.sessions.get(session_id)
        if session is not None:
            session.expired = True
        self.expired.append(session_id)

    # ───────────────────────────────────────────────────────────────────────────
    # Test controls
    # ───────────────────────────────────────────────────────────────────────────

    def pay(self, session_id: str) -> str:
        """Mark a session paid. Returns the payment intent id."""
        session = self.sessions[session_id]
        session.paid = True
        session.payment_intent_id = f"pi_test_{session_id.removeprefix('cs_test_')}"
        return session.payment_intent_id

    def sign(self, payload: bytes, secret: str, timestamp: int | None = None) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        return f"t={ts},v1={_digest(payload, secret, ts)}"

    # ───────────────────────────────────────────────────────────────────────────
    # Verification
    # ───────────────────────────────────────────────────────────────────────────

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str | None,
        secret: str,
    ) -> Result[ProcessorEvent, ShopError]:
        if not signature:
            return Error(Errors.invalid_signature())

        parts = dict(
            part.split("=", 1) for part in signature.split(",") if "=" in part
        )
        try:
            ts = int(parts.get("t", ""))
        except ValueError:
            return Error(Errors.invalid_signature())

        if abs(time.time() - ts) > self.tolerance_seconds:
            return Error(Errors.invalid_signature())
        if not hmac.compare_digest(parts.get("v1", ""), _digest(payload, secret, ts)):
            return Error(Errors.invalid_signature())

        return parse_event(payload)


def _digest(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


__all__ = ("InMemoryProcessor", "ProcessorUnavailable")
