"""
Payments — processor interface and adapters.

    from storefront import payments as P

    processor: P.PaymentProcessor = P.StripeProcessor(api_key, success_url, cancel_url)
    processor = P.InMemoryProcessor()   # tests / local runs
"""

from storefront.payments._types import (
    SESSION_COMPLETED,
    SESSION_EXPIRED,
    INTENT_SUCCEEDED,
    INTENT_FAILED,
    LineItem,
    CheckoutSession,
    SessionStatus,
    ProcessorEvent,
    parse_event,
    PaymentProcessor,
)
from storefront.payments._stripe import StripeProcessor
from storefront.payments._memory import InMemoryProcessor, ProcessorUnavailable

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
    "StripeProcessor",
    "InMemoryProcessor",
    "ProcessorUnavailable",
)
