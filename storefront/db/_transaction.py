"""
Transaction — explicit unit-of-work scope.

Commits only when ``commit()`` is called. Every other exit path (exception,
early return, an ``Error`` result) rolls back.

    async with Transaction(session_factory) as tx:
        tx.session.add(row)
        match await do_more(tx):
            case Ok(value):
                await tx.commit()
                return Ok(value)
            case Error(e):
                return Error(e)   # rolled back on exit
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from kungfu import Result, Ok, Error
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.domain import ShopError, Errors
from storefront.logging import get_logger

logger = get_logger("db")


class Transaction:
    __slots__ = ("_factory", "_session", "_closed")

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory
        self._session: AsyncSession | None = None
        self._closed = False

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("Transaction used outside of 'async with'")
        return self._session

    @property
    def committed(self) -> bool:
        return self._closed

    async def commit(self) -> None:
        await self.session.commit()
        self._closed = True

    async def rollback(self) -> None:
        """Roll back unless already finished. Safe to call repeatedly."""
        if self._closed or self._session is None:
            return
        self._closed = True
        await self._session.rollback()

    async def __aenter__(self) -> Transaction:
        self._session = self._factory()
        self._closed = False
        return self

    async def __aexit__(self, *exc: object) -> None:
        try:
            await self.rollback()
        finally:
            await self.session.close()
            self._session = None


# ═══════════════════════════════════════════════════════════════════════════════
# atomically() — Result-returning work in one transaction
# ═══════════════════════════════════════════════════════════════════════════════


async def atomically[T](
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[Transaction], Awaitable[Result[T, ShopError]]],
) -> Result[T, ShopError]:
    """
    Run ``work`` in a fresh transaction. Commit on Ok, roll back on Error.

    Database errors roll back and surface as INTEGRITY_FAILURE.
    """
    try:
        async with Transaction(session_factory) as tx:
            result = await work(tx)
            match result:
                case Ok(_):
                    await tx.commit()
            return result
    except SQLAlchemyError as e:
        logger.error("transaction_failed", error=str(e), error_type=type(e).__name__)
        return Error(Errors.integrity_failure())


__all__ = ("Transaction", "atomically")
