"""
Webhook intake — authenticate, de-duplicate, route.

    receiver = WebhookReceiver(reconciler, processor, store_for, settings)

    match await receiver.receive(body, request.headers.get("Stripe-Signature")):
        case Ok(ack):
            return 200, {"status": ack.value}
        case Error(e):
            return status_for(e), ...   # 400 bad signature or body, 500 retry later
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from kungfu import Result, Ok, Error

from storefront import idempotency as I
from storefront.config import Settings
from storefront.domain import ErrorKind, Errors, ShopError
from storefront.logging import get_logger
from storefront.payments import (
    INTENT_FAILED,
    INTENT_SUCCEEDED,
    SESSION_COMPLETED,
    SESSION_EXPIRED,
    PaymentProcessor,
    ProcessorEvent,
    parse_event,
)
from storefront.reconcile import Applied, Reconciler

logger = get_logger("webhooks")

HANDLED_TYPES = frozenset({SESSION_COMPLETED, SESSION_EXPIRED, INTENT_SUCCEEDED, INTENT_FAILED})

# Answered with an error status so the processor redelivers
RETRYABLE_KINDS = frozenset({ErrorKind.INTEGRITY, ErrorKind.EXTERNAL_SERVICE})


class WebhookAck(str, Enum):
    """How an authentic event was acknowledged. All map to HTTP 200."""

    APPLIED = "applied"
    SKIPPED = "skipped"  # handled, state already matched
    DUPLICATE = "duplicate"  # same event id seen before
    IN_FLIGHT = "in_flight"  # same event id being handled right now
    IGNORED = "ignored"  # type we do not handle
    FAILED = "failed"  # handler rejected the event; retrying would not help


type StoreFor = Callable[[ProcessorEvent], I.Store]


class WebhookReceiver:
    def __init__(
        self,
        reconciler: Reconciler,
        processor: PaymentProcessor,
        store_for: StoreFor,
        settings: Settings,
    ) -> None:
        self._reconciler = reconciler
        self._processor = processor
        self._store_for = store_for
        self._secret = settings.webhook_secret
        self._policy = (
            I.Policy()
            .with_ttl(hours=settings.event_ttl_hours)
            .with_on_pending(I.FAIL)
        )

    async def receive(self, payload: bytes, signature: str | None) -> Result[WebhookAck, ShopError]:
        match self._authenticate(payload, signature):
            case Error(e):
                logger.warning("webhook_rejected", code=e.code)
                return Error(e)
            case Ok(event):
                pass

        log = logger.bind(event_id=event.id, event_type=event.type)
        if event.type not in HANDLED_TYPES:
            log.info("webhook_ignored")
            return Ok(WebhookAck.IGNORED)

        executor = (
            I.idempotent(self._route)
            .key(lambda ev: f"event:{ev.id}")
            .store(self._store_for(event))
            .policy(self._policy)
            .build()
        )

        match await executor.run(event):
            case Ok(done) if done.from_cache:
                log.info("webhook_duplicate")
                return Ok(WebhookAck.DUPLICATE)
            case Ok(done):
                log.info("webhook_handled", outcome=done.value)
                return Ok(WebhookAck(done.value))
            case Error(e) if e.kind == I.IdempotencyErrorKind.CONFLICT:
                log.info("webhook_in_flight")
                return Ok(WebhookAck.IN_FLIGHT)
            case Error(e):
                cause = e.original_error if isinstance(e.original_error, ShopError) else None
                if cause is not None and cause.kind not in RETRYABLE_KINDS:
                    log.warning("webhook_handler_rejected", code=cause.code)
                    return Ok(WebhookAck.FAILED)
                log.error("webhook_handler_failed", kind=e.kind.name, detail=e.message)
                return Error(cause or Errors.integrity_failure())

    def _authenticate(
        self, payload: bytes, signature: str | None
    ) -> Result[ProcessorEvent, ShopError]:
        if self._secret:
            return self._processor.verify_webhook_signature(payload, signature, self._secret)
        return parse_event(payload)

    async def _route(self, event: ProcessorEvent) -> Result[str, ShopError]:
        object_id = event.object_id
        if object_id is None:
            return Error(Errors.invalid_payload("Event object has no id"))

        match event.type:
            case "checkout.session.completed":
                intent = event.data.get("payment_intent")
                result = await self._reconciler.session_completed(
                    object_id, intent if isinstance(intent, str) else None
                )
            case "checkout.session.expired":
                result = await self._reconciler.session_expired(object_id)
            case "payment_intent.succeeded":
                result = await self._reconciler.intent_succeeded(object_id)
            case "payment_intent.payment_failed":
                result = await self._reconciler.intent_failed(object_id)
            case _:
                return Ok(WebhookAck.IGNORED.value)

        match result:
            case Ok(Applied(changed=True)):
                return Ok(WebhookAck.APPLIED.value)
            case Ok(_):
                return Ok(WebhookAck.SKIPPED.value)
            case Error(e):
                return Error(e)


__all__ = ("WebhookAck", "WebhookReceiver", "HANDLED_TYPES", "RETRYABLE_KINDS", "StoreFor")
