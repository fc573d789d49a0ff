"""
Inventory ledger — stock counters with atomic check-and-decrement.

Both operations run inside the caller's transaction.
"""

from __future__ import annotations

from typing import Any, cast

from kungfu import Result, Ok, Error
from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db import ProductRow
from storefront.domain import ShopError, Errors


class InventoryLedger:
    """
    Stock decrement and increment.

    ``reserve`` is a single conditional UPDATE, so two transactions can never
    both take the last unit. When it matches nothing the row is re-read to
    tell "unavailable" from "insufficient".
    """

    __slots__ = ("_session",)

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def reserve(self, product_id: int, quantity: int) -> Result[None, ShopError]:
        stmt = (
            update(ProductRow)
            .where(
                ProductRow.id == product_id,
                ProductRow.is_active.is_(True),
                ProductRow.stock >= quantity,
            )
            .values(stock=ProductRow.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await self._session.execute(stmt))
        if cursor.rowcount == 1:
            return Ok(None)

        row = (
            await self._session.execute(
                select(ProductRow.name, ProductRow.is_active).where(ProductRow.id == product_id)
            )
        ).one_or_none()
        if row is None:
            return Error(Errors.product_unavailable(f"#{product_id}"))
        name, is_active = row
        if not is_active:
            return Error(Errors.product_unavailable(name))
        return Error(Errors.insufficient_stock(name))

    async def release(self, product_id: int, quantity: int) -> None:
        """Give stock back. No upper bound."""
        await self._session.execute(
            update(ProductRow)
            .where(ProductRow.id == product_id)
            .values(stock=ProductRow.stock + quantity)
            .execution_options(synchronize_session=False)
        )

    async def stock_of(self, product_id: int) -> int | None:
        return (
            await self._session.execute(
                select(ProductRow.stock).where(ProductRow.id == product_id)
            )
        ).scalar_one_or_none()


__all__ = ("InventoryLedger",)
