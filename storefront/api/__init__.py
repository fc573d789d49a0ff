"""
API — FastAPI application over a Shop.

    from storefront.api import create_app

    app = create_app(await open_shop())
"""

from storefront.api._app import create_app, status_for, unwrap, acting_user
from storefront.api._models import (
    ErrorResponse,
    CartItemRequest,
    CartResponse,
    SummaryResponse,
    OrderResponse,
    PaymentResponse,
    CheckoutRequestBody,
    OfflineCheckoutResponse,
    RedirectCheckoutResponse,
    VerifyPaymentRequest,
    OrderActionResponse,
    ReasonRequest,
    StaleSweepRequest,
    StaleSweepResponse,
    WebhookResponse,
)

__all__ = (
    "create_app",
    "status_for",
    "unwrap",
    "acting_user",
    "ErrorResponse",
    "CartItemRequest",
    "CartResponse",
    "SummaryResponse",
    "OrderResponse",
    "PaymentResponse",
    "CheckoutRequestBody",
    "OfflineCheckoutResponse",
    "RedirectCheckoutResponse",
    "VerifyPaymentRequest",
    "OrderActionResponse",
    "ReasonRequest",
    "StaleSweepRequest",
    "StaleSweepResponse",
    "WebhookResponse",
)
