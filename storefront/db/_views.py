"""
Row → snapshot conversion. Call inside the transaction that loaded the row.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.db._models import CartItemRow, CartRow, OrderRow, PaymentRow
from storefront.domain import (
    CartLine,
    CartView,
    OrderItemView,
    OrderStatus,
    OrderView,
    PaymentMethod,
    PaymentStatus,
    PaymentView,
    money,
)


def payment_view(row: PaymentRow) -> PaymentView:
    return PaymentView(
        id=row.id,
        order_id=row.order_id,
        amount=money(row.amount),
        method=PaymentMethod(row.method),
        status=PaymentStatus(row.status),
        checkout_session_id=row.checkout_session_id,
        payment_intent_id=row.payment_intent_id,
        checkout_url=row.checkout_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def order_view(row: OrderRow) -> OrderView:
    """Needs ``items`` and ``payment`` loaded."""
    return OrderView(
        id=row.id,
        user_id=row.user_id,
        total=money(row.total),
        status=OrderStatus(row.status),
        notes=row.notes,
        items=tuple(
            OrderItemView(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=money(item.unit_price),
            )
            for item in row.items
        ),
        payment=payment_view(row.payment) if row.payment is not None else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def cart_view(row: CartRow) -> CartView:
    """Needs ``items`` and each item's ``product`` loaded."""
    return CartView(
        id=row.id,
        user_id=row.user_id,
        lines=tuple(
            CartLine(
                product_id=item.product_id,
                name=item.product.name,
                unit_price=money(item.product.price),
                quantity=item.quantity,
                available_stock=item.product.stock,
                is_active=item.product.is_active,
            )
            for item in row.items
        ),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Loaders
# ═══════════════════════════════════════════════════════════════════════════════


async def load_order(session: AsyncSession, order_id: int) -> OrderRow | None:
    stmt = (
        select(OrderRow)
        .where(OrderRow.id == order_id)
        .options(selectinload(OrderRow.items), selectinload(OrderRow.payment))
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def load_cart(
    session: AsyncSession,
    *,
    cart_id: int | None = None,
    user_id: int | None = None,
) -> CartRow | None:
    stmt = select(CartRow).options(
        selectinload(CartRow.items).selectinload(CartItemRow.product)
    ).execution_options(populate_existing=True)
    if cart_id is not None:
        stmt = stmt.where(CartRow.id == cart_id)
    else:
        stmt = stmt.where(CartRow.user_id == user_id)
    return (await session.execute(stmt)).scalar_one_or_none()


async def load_payment_by(
    session: AsyncSession,
    *,
    session_id: str | None = None,
    intent_id: str | None = None,
    order_id: int | None = None,
) -> PaymentRow | None:
    stmt = select(PaymentRow).execution_options(populate_existing=True)
    if session_id is not None:
        stmt = stmt.where(PaymentRow.checkout_session_id == session_id)
    elif intent_id is not None:
        stmt = stmt.where(PaymentRow.payment_intent_id == intent_id)
    else:
        stmt = stmt.where(PaymentRow.order_id == order_id)
    return (await session.execute(stmt)).scalar_one_or_none()


__all__ = (
    "payment_view",
    "order_view",
    "cart_view",
    "load_order",
    "load_cart",
    "load_payment_by",
)
