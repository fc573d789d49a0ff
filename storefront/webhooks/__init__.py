"""
Webhooks — signed processor notifications.

    from storefront.webhooks import WebhookReceiver, event_store

    receiver = WebhookReceiver(reconciler, processor, event_store(session_factory), settings)
"""

from storefront.webhooks._receiver import (
    WebhookAck,
    WebhookReceiver,
    HANDLED_TYPES,
    RETRYABLE_KINDS,
    StoreFor,
)
from storefront.webhooks._store import event_store

__all__ = (
    "WebhookAck",
    "WebhookReceiver",
    "HANDLED_TYPES",
    "RETRYABLE_KINDS",
    "StoreFor",
    "event_store",
)
