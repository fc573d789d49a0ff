"""
Guarded state changes. Each is one conditional UPDATE; the rowcount says
whether this caller made the change.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, cast

from kungfu import Result, Ok, Error
from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db import OrderItemRow, OrderRow, PaymentRow
from storefront.domain import OrderStatus, PaymentStatus, ShopError
from storefront.inventory import InventoryLedger


async def _rowcount(session: AsyncSession, stmt: Any) -> int:
    cursor = cast(CursorResult[Any], await session.execute(
        stmt.execution_options(synchronize_session=False)
    ))
    return cursor.rowcount


async def move_payment(
    session: AsyncSession,
    payment_id: int,
    to: PaymentStatus,
    *,
    only_from: Iterable[PaymentStatus] | None = None,
    unless: PaymentStatus | None = None,
    **columns: object,
) -> bool:
    stmt = update(PaymentRow).where(PaymentRow.id == payment_id)
    if only_from is not None:
        stmt = stmt.where(PaymentRow.status.in_([s.value for s in only_from]))
    if unless is not None:
        stmt = stmt.where(PaymentRow.status != unless.value)
    return await _rowcount(session, stmt.values(status=to.value, **columns)) == 1


async def move_order(
    session: AsyncSession,
    order_id: int,
    to: OrderStatus,
    *,
    only_from: Iterable[OrderStatus] | None = None,
) -> bool:
    stmt = update(OrderRow).where(OrderRow.id == order_id)
    if only_from is not None:
        stmt = stmt.where(OrderRow.status.in_([s.value for s in only_from]))
    return await _rowcount(session, stmt.values(status=to.value)) == 1


async def cancel_and_release(
    session: AsyncSession,
    order_id: int,
    *,
    only_from: Iterable[OrderStatus] | None = None,
) -> bool:
    """
    Cancel the order and give its stock back, at most once per order.

    The status flip to ``cancelled`` is conditional on the order not being
    cancelled already. Only the caller whose UPDATE matched releases stock,
    in the same transaction.
    """
    stmt = update(OrderRow).where(
        OrderRow.id == order_id,
        OrderRow.status != OrderStatus.CANCELLED.value,
    )
    if only_from is not None:
        stmt = stmt.where(OrderRow.status.in_([s.value for s in only_from]))
    if await _rowcount(session, stmt.values(status=OrderStatus.CANCELLED.value)) != 1:
        return False

    ledger = InventoryLedger(session)
    items = await session.execute(
        select(OrderItemRow.product_id, OrderItemRow.quantity).where(
            OrderItemRow.order_id == order_id
        )
    )
    for product_id, quantity in items.all():
        await ledger.release(product_id, quantity)
    return True


async def reopen_and_reserve(
    session: AsyncSession,
    order_id: int,
    to: OrderStatus,
) -> Result[bool, ShopError]:
    """
    Move a cancelled order to ``to`` and take its stock again.

    Counterpart of ``cancel_and_release``: only the caller whose UPDATE
    matched reserves, so a later cancel releases exactly what was taken.
    An item that can no longer be reserved fails the whole call; the caller
    must roll back.
    """
    stmt = update(OrderRow).where(
        OrderRow.id == order_id,
        OrderRow.status == OrderStatus.CANCELLED.value,
    )
    if await _rowcount(session, stmt.values(status=to.value)) != 1:
        return Ok(False)

    ledger = InventoryLedger(session)
    items = await session.execute(
        select(OrderItemRow.product_id, OrderItemRow.quantity).where(
            OrderItemRow.order_id == order_id
        )
    )
    for product_id, quantity in items.all():
        match await ledger.reserve(product_id, quantity):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass
    return Ok(True)


__all__ = ("move_payment", "move_order", "cancel_and_release", "reopen_and_reserve")
