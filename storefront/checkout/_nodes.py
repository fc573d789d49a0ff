"""
Checkout graph — order placement as nodnod nodes.

    CheckoutRequest, Transaction, PaymentStyle (injected)
         │
         ▼
    CartNode ──► PricedCartNode ──► OrderNode ──► ReservationNode
                                                      │
                                                      ▼
                                   ClearCartNode ◄── PaymentNode
                                        │
                                        ▼
                                   PlacedOrderNode

Every database node depends on the previous one so that they share the
session strictly one at a time.

Nodes raise ShopFailure; the caller turns it into Error(...).

Note: no 'from __future__ import annotations' here, nodnod resolves
dependencies from runtime type hints.
"""

from dataclasses import dataclass
from decimal import Decimal

from kungfu import Ok, Error

from storefront import graph as G
from storefront.config import PaymentStyle
from storefront.db import (
    CartRow,
    OrderItemRow,
    OrderRow,
    PaymentRow,
    Transaction,
    cart_view,
    load_cart,
)
from storefront.domain import (
    CartLine,
    Errors,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShopFailure,
    money,
)
from storefront.inventory import InventoryLedger


# ═══════════════════════════════════════════════════════════════════════════════
# Input
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    user_id: int
    cart_id: int | None = None
    notes: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class CartNode:
    """The acting user's non-empty cart."""

    def __init__(self, cart: CartRow) -> None:
        self.cart = cart

    @classmethod
    async def __compose__(cls, request: CheckoutRequest, tx: Transaction) -> "CartNode":
        if request.cart_id is not None:
            cart = await load_cart(tx.session, cart_id=request.cart_id)
        else:
            cart = await load_cart(tx.session, user_id=request.user_id)

        if cart is None:
            raise ShopFailure(Errors.cart_not_found())
        if cart.user_id != request.user_id:
            raise ShopFailure(Errors.unauthorized("Unauthorized access to cart"))
        if not cart.items:
            raise ShopFailure(Errors.cart_empty())
        return cls(cart)


@G.node
class PricedCartNode:
    """Every line purchasable; total at live prices."""

    def __init__(self, lines: tuple[CartLine, ...], total: Decimal) -> None:
        self.lines = lines
        self.total = total

    @classmethod
    def __compose__(cls, cart: CartNode) -> "PricedCartNode":
        view = cart_view(cart.cart)
        for line in view.lines:
            if not line.is_active:
                raise ShopFailure(Errors.product_unavailable(line.name))
            if line.available_stock < line.quantity:
                raise ShopFailure(Errors.insufficient_stock(line.name))
        return cls(view.lines, view.subtotal)


# ═══════════════════════════════════════════════════════════════════════════════
# Order + Stock
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class OrderNode:
    """Pending order with price-snapshotted items."""

    def __init__(self, order: OrderRow) -> None:
        self.order = order

    @classmethod
    async def __compose__(
        cls,
        priced: PricedCartNode,
        request: CheckoutRequest,
        tx: Transaction,
    ) -> "OrderNode":
        order = OrderRow(
            user_id=request.user_id,
            total=priced.total,
            status=OrderStatus.PENDING.value,
            notes=request.notes,
            items=[
                OrderItemRow(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in priced.lines
            ],
            payment=None,
        )
        tx.session.add(order)
        await tx.session.flush()
        return cls(order)


@G.node
class ReservationNode:
    """Stock taken for every line, or nothing (the transaction rolls back)."""

    def __init__(self, reserved: tuple[tuple[int, int], ...]) -> None:
        self.reserved = reserved

    @classmethod
    async def __compose__(
        cls,
        order: OrderNode,
        priced: PricedCartNode,
        tx: Transaction,
    ) -> "ReservationNode":
        ledger = InventoryLedger(tx.session)
        reserved: list[tuple[int, int]] = []
        for line in priced.lines:
            match await ledger.reserve(line.product_id, line.quantity):
                case Ok(_):
                    reserved.append((line.product_id, line.quantity))
                case Error(e):
                    raise ShopFailure(e)
        return cls(tuple(reserved))


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class PaymentNode:
    """Exactly one pending payment for the order."""

    def __init__(self, payment: PaymentRow) -> None:
        self.payment = payment

    @classmethod
    async def __compose__(
        cls,
        reserved: ReservationNode,
        order: OrderNode,
        style: PaymentStyle,
        tx: Transaction,
    ) -> "PaymentNode":
        method = PaymentMethod.STRIPE if style is PaymentStyle.REDIRECT else PaymentMethod.OFFLINE
        payment = PaymentRow(
            order=order.order,
            amount=money(order.order.total),
            method=method.value,
            status=PaymentStatus.PENDING.value,
        )
        tx.session.add(payment)
        await tx.session.flush()
        return cls(payment)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Cleanup + Final
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class ClearCartNode:
    def __init__(self, cart_id: int) -> None:
        self.cart_id = cart_id

    @classmethod
    async def __compose__(
        cls,
        payment: PaymentNode,
        cart: CartNode,
        tx: Transaction,
    ) -> "ClearCartNode":
        cart_id = cart.cart.id
        await tx.session.delete(cart.cart)
        await tx.session.flush()
        return cls(cart_id)


@dataclass(frozen=True, slots=True)
class PlacedOrder:
    """Placement inside the open transaction. Rows are live."""

    order: OrderRow
    payment: PaymentRow
    lines: tuple[CartLine, ...]


@G.node
class PlacedOrderNode:
    def __init__(self, data: PlacedOrder) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        cleared: ClearCartNode,
        order: OrderNode,
        payment: PaymentNode,
        priced: PricedCartNode,
    ) -> "PlacedOrderNode":
        return cls(PlacedOrder(order.order, payment.payment, priced.lines))


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
)
