"""
Order reads.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from storefront.db import OrderRow, Transaction, atomically, load_order, load_payment_by, order_view, payment_view
from storefront.domain import Errors, OrderView, PaymentView, ShopError


class OrderQueries:
    __slots__ = ("_session_factory",)

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_order(self, user_id: int, order_id: int) -> Result[OrderView, ShopError]:
        """Another user's order looks the same as a missing one."""

        async def work(tx: Transaction) -> Result[OrderView, ShopError]:
            order = await load_order(tx.session, order_id)
            if order is None or order.user_id != user_id:
                return Error(Errors.order_not_found(order_id))
            return Ok(order_view(order))

        return await atomically(self._session_factory, work)

    async def list_orders(self, user_id: int) -> Result[list[OrderView], ShopError]:
        async def work(tx: Transaction) -> Result[list[OrderView], ShopError]:
            rows = await tx.session.execute(
                select(OrderRow)
                .where(OrderRow.user_id == user_id)
                .options(selectinload(OrderRow.items), selectinload(OrderRow.payment))
                .order_by(OrderRow.created_at.desc(), OrderRow.id.desc())
            )
            return Ok([order_view(row) for row in rows.scalars()])

        return await atomically(self._session_factory, work)

    async def get_payment(self, order_id: int) -> Result[PaymentView, ShopError]:
        async def work(tx: Transaction) -> Result[PaymentView, ShopError]:
            if await tx.session.get(OrderRow, order_id) is None:
                return Error(Errors.order_not_found(order_id))
            payment = await load_payment_by(tx.session, order_id=order_id)
            if payment is None:
                return Error(Errors.payment_not_found())
            return Ok(payment_view(payment))

        return await atomically(self._session_factory, work)


__all__ = ("OrderQueries",)
