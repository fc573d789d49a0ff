"""
Stripe adapter.

The SDK is synchronous; calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta

import stripe
from kungfu import Result, Error

from storefront.domain import ShopError, Errors, to_cents
from storefront.logging import get_logger
from storefront.payments._types import (
    CheckoutSession,
    LineItem,
    ProcessorEvent,
    SessionStatus,
    parse_event,
)

logger = get_logger("stripe")


class StripeProcessor:
    """
    Example:
        processor = StripeProcessor(
            api_key=settings.stripe_secret_key,
            success_url=settings.success_url,
            cancel_url=settings.cancel_url,
            currency=settings.currency,
        )
    """

    def __init__(
        self,
        api_key: str,
        success_url: str,
        cancel_url: str,
        currency: str = "usd",
        session_ttl: timedelta = timedelta(minutes=30),
    ) -> None:
        stripe.api_key = api_key
        self._success_url = success_url
        self._cancel_url = cancel_url
        self._currency = currency
        self._session_ttl = session_ttl

    async def create_checkout_session(
        self,
        items: list[LineItem],
        metadata: dict[str, str],
    ) -> CheckoutSession:
        line_items = [
            {
                "price_data": {
                    "currency": self._currency,
                    "product_data": {"name": item.name},
                    "unit_amount": to_cents(item.unit_amount),
                },
                "quantity": item.quantity,
            }
            for item in items
        ]
        expires_at = int((datetime.now() + self._session_ttl).timestamp())
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                mode="payment",
                payment_method_types=["card"],
                line_items=line_items,
                success_url=self._success_url,
                cancel_url=self._cancel_url,
                expires_at=expires_at,
                metadata=metadata,
                idempotency_key=f"checkout_order_{metadata.get('order_id', '')}",
            )
        except stripe.StripeError as e:
            logger.error("checkout_session_failed", error=str(e), error_type=type(e).__name__)
            raise

        logger.info("checkout_session_created", stripe_session_id=session.id)
        return CheckoutSession(id=session.id, url=session.url or "")

    async def retrieve_session(self, session_id: str) -> SessionStatus:
        session = await asyncio.to_thread(stripe.checkout.Session.retrieve, session_id)
        intent = session.payment_intent
        intent_id = intent if isinstance(intent, str) or intent is None else intent.id
        return SessionStatus(
            id=session.id,
            paid=session.payment_status == "paid",
            payment_intent_id=intent_id,
        )

    async def expire_session(self, session_id: str) -> None:
        await asyncio.to_thread(stripe.checkout.Session.expire, session_id)
        logger.info("checkout_session_expired", stripe_session_id=session_id)

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str | None,
        secret: str,
    ) -> Result[ProcessorEvent, ShopError]:
        if not signature:
            return Error(Errors.invalid_signature())
        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            return Error(Errors.invalid_signature())
        except (ValueError, json.JSONDecodeError) as e:
            logger.warning("webhook_payload_invalid", error=str(e))
            return Error(Errors.invalid_payload())
        return parse_event(payload)


__all__ = ("StripeProcessor",)
