"""
Domain — statuses, snapshots and the error taxonomy.

    from storefront import domain as D

    D.OrderStatus.PENDING
    D.Errors.insufficient_stock("Widget")
"""

from storefront.domain._types import (
    CENT,
    money,
    to_cents,
    OrderStatus,
    PaymentStatus,
    PaymentMethod,
    SETTLED_ORDER_STATES,
    CartLine,
    CartView,
    CheckoutSummary,
    OrderItemView,
    PaymentView,
    OrderView,
    OfflineCheckout,
    RedirectCheckout,
    CheckoutResult,
)
from storefront.domain._errors import ErrorKind, ShopError, ShopFailure, Errors

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
    "ErrorKind",
    "ShopError",
    "ShopFailure",
    "Errors",
)
