"""
Persistence — SQLAlchemy models, schema setup and the Transaction scope.

    from storefront import db

    session_factory, engine = await db.create_database("sqlite+aiosqlite:///shop.db")

    async with db.Transaction(session_factory) as tx:
        order = await db.load_order(tx.session, 42)
"""

from storefront.db._models import (
    Base,
    ProductRow,
    CartRow,
    CartItemRow,
    OrderRow,
    OrderItemRow,
    PaymentRow,
    ProcessedEventRow,
    create_database,
)
from storefront.db._transaction import Transaction, atomically
from storefront.db._views import (
    payment_view,
    order_view,
    cart_view,
    load_order,
    load_cart,
    load_payment_by,
)

__all__ = (
    "Base",
    "ProductRow",
    "CartRow",
    "CartItemRow",
    "OrderRow",
    "OrderItemRow",
    "PaymentRow",
    "ProcessedEventRow",
    "create_database",
    "Transaction",
    "atomically",
    "payment_view",
    "order_view",
    "cart_view",
    "load_order",
    "load_cart",
    "load_payment_by",
)
