"""
Reconcile — drive orders and payments to their final states.

    from storefront.reconcile import Reconciler

    await reconciler.session_completed(session_id, payment_intent_id)
    await reconciler.refund(order_id, reason="damaged in transit")
    sweep = await reconciler.cancel_stale(timedelta(days=7))
"""

from storefront.reconcile._transitions import (
    move_payment,
    move_order,
    cancel_and_release,
    reopen_and_reserve,
)
from storefront.reconcile._reconciler import (
    Applied,
    StaleSweep,
    Reconciler,
    DEFAULT_CANCEL_REASON,
    DEFAULT_REFUND_REASON,
)
from storefront.reconcile._queries import OrderQueries

__all__ = (
    "move_payment",
    "move_order",
    "cancel_and_release",
    "reopen_and_reserve",
    "Applied",
    "StaleSweep",
    "Reconciler",
    "DEFAULT_CANCEL_REASON",
    "DEFAULT_REFUND_REASON",
    "OrderQueries",
)
