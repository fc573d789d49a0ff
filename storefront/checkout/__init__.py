"""
Checkout — place an order from a cart.

    from storefront.checkout import CheckoutService

    result = await CheckoutService(session_factory, processor, settings).checkout(user_id)
"""

from storefront.checkout._nodes import (
    CheckoutRequest,
    CartNode,
    PricedCartNode,
    OrderNode,
    ReservationNode,
    PaymentNode,
    ClearCartNode,
    PlacedOrder,
    PlacedOrderNode,
)
from storefront.checkout._service import CheckoutService, MAX_NOTES_LENGTH

__all__ = (
    "CheckoutRequest",
    "CartNode",
    "PricedCartNode",
    "OrderNode",
    "ReservationNode",
    "PaymentNode",
    "ClearCartNode",
    "PlacedOrder",
    "PlacedOrderNode",
    "CheckoutService",
    "MAX_NOTES_LENGTH",
)
