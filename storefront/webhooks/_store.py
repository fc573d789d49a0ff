"""
Processed-event store backed by the ``processed_events`` table.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront import idempotency as I
from storefront.db import ProcessedEventRow
from storefront.payments import ProcessorEvent
from storefront.webhooks._receiver import StoreFor


def event_store(
    session_factory: async_sessionmaker[AsyncSession],
    dialect: str = "sqlite",
) -> StoreFor:
    """Store factory for WebhookReceiver; each row remembers its event type."""
    insert = pg_insert if dialect == "postgresql" else sqlite_insert

    def to_insert(key: str, expires_at: datetime | None, event_type: str) -> Any:
        return (
            insert(ProcessedEventRow)
            .values(
                idempotency_key=key,
                idempotency_status=I.IdempotencyStatus.PENDING,
                idempotency_expires_at=expires_at,
                event_type=event_type,
                received_at=datetime.now(),
            )
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        )

    store: I.SQLAlchemyStore[ProcessedEventRow, str] = I.SQLAlchemyStore(
        session_factory, model=ProcessedEventRow, to_insert=to_insert
    )

    def store_for(event: ProcessorEvent) -> I.Store:
        return store.with_pending(event.type)

    return store_for


__all__ = ("event_store",)
