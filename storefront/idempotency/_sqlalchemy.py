"""
SQLAlchemy store — idempotency records as rows of any model with the mixin.

    class ProcessedEventRow(Base, IdempotencyMixin):
        __tablename__ = "processed_events"
        id: Mapped[int] = mapped_column(primary_key=True)
        event_type: Mapped[str] = ...

    store = SQLAlchemyStore(
        session_factory,
        model=ProcessedEventRow,
        to_insert=lambda key, expires_at, event_type: (
            sqlite_insert(ProcessedEventRow)
            .values(idempotency_key=key, event_type=event_type, ...)
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        ),
    ).with_pending("checkout.session.completed")
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar, cast

from sqlalchemy import DateTime, String, Text, delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Result, Ok, Error

from storefront.idempotency._store import StoreError
from storefront.idempotency._types import IdempotencyRecord, RecordState


# ═══════════════════════════════════════════════════════════════════════════════
# Mixin
# ═══════════════════════════════════════════════════════════════════════════════


class IdempotencyMixin:
    idempotency_key: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    idempotency_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )
    idempotency_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class IdempotencyStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


_STATES = {
    IdempotencyStatus.PENDING: RecordState.PENDING,
    IdempotencyStatus.COMPLETED: RecordState.COMPLETED,
    IdempotencyStatus.FAILED: RecordState.FAILED,
}

M = TypeVar("M", bound=IdempotencyMixin)
P = TypeVar("P")

type InsertFactory[P] = Callable[[str, datetime | None, P], Any]


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStore(Generic[M, P]):
    """
    Each call uses its own short session and commits immediately, so records
    are visible to concurrent deliveries right away.

    ``to_insert`` must build an INSERT that does nothing on key conflict;
    its rowcount is the compare-and-swap result.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[M],
        to_insert: InsertFactory[P],
        pending: P | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._model = model
        self._to_insert = to_insert
        self._pending = pending

    def with_pending(self, pending: P) -> "SQLAlchemyStore[M, P]":
        """Same store, carrying the extra columns for the next pending row."""
        return SQLAlchemyStore(self._session_factory, self._model, self._to_insert, pending)

    async def get(self, key: str) -> Result[IdempotencyRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._row(session, key)
                if row is None:
                    return Ok(None)
                record = self._to_record(row)
                return Ok(None if record.is_expired else record)
        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to get: {e}", e))

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        if self._pending is None:
            return Error(StoreError("Pending data not set. Call with_pending() first."))
        now = datetime.now()
        try:
            async with self._session_factory() as session:
                # An expired record no longer owns the key
                await session.execute(
                    delete(self._model).where(
                        self._model.idempotency_key == key,
                        self._model.idempotency_expires_at.is_not(None),
                        self._model.idempotency_expires_at < now,
                    )
                )
                stmt = self._to_insert(key, now + ttl if ttl else None, self._pending)
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to set pending: {e}", e))

    async def set_completed(
        self, key: str, value: str, ttl: timedelta | None
    ) -> Result[None, StoreError]:
        return await self._finish(key, IdempotencyStatus.COMPLETED, value, None, ttl)

    async def set_failed(
        self, key: str, error: str, ttl: timedelta | None
    ) -> Result[None, StoreError]:
        return await self._finish(key, IdempotencyStatus.FAILED, None, error, ttl)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(
                        delete(self._model).where(self._model.idempotency_key == key)
                    ),
                )
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to delete: {e}", e))

    # ───────────────────────────────────────────────────────────────────────────

    async def _row(self, session: AsyncSession, key: str) -> M | None:
        stmt = select(self._model).where(self._model.idempotency_key == key)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _finish(
        self,
        key: str,
        status: str,
        value: str | None,
        error: str | None,
        ttl: timedelta | None,
    ) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._row(session, key)
                if row is None:
                    return Error(StoreError(f"Record not found: {key}"))
                row.idempotency_status = status
                row.idempotency_value = value
                row.idempotency_error = error
                row.idempotency_expires_at = datetime.now() + ttl if ttl else None
                await session.commit()
                return Ok(None)
        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to store {status}: {e}", e))

    @staticmethod
    def _to_record(row: IdempotencyMixin) -> IdempotencyRecord:
        return IdempotencyRecord(
            key=row.idempotency_key,
            state=_STATES.get(row.idempotency_status, RecordState.PENDING),
            value=row.idempotency_value,
            error=row.idempotency_error,
            expires_at=row.idempotency_expires_at,
        )


__all__ = ("IdempotencyMixin", "IdempotencyStatus", "SQLAlchemyStore")
