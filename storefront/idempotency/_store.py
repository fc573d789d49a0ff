"""
Idempotency store protocol and the in-memory store.

All methods return Result; a store never raises.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from kungfu import Result, Ok, Error

from storefront.idempotency._types import IdempotencyRecord, RecordState


@dataclass(frozen=True)
class StoreError:
    message: str
    cause: Exception | None = None


class Store(Protocol):
    async def get(self, key: str) -> Result[IdempotencyRecord | None, StoreError]:
        """Ok(None) when missing or expired."""
        ...

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        """
        Compare-and-swap.

        Ok(True) if this caller now owns the key, Ok(False) if a live record
        already exists.
        """
        ...

    async def set_completed(
        self, key: str, value: str, ttl: timedelta | None
    ) -> Result[None, StoreError]: ...

    async def set_failed(
        self, key: str, error: str, ttl: timedelta | None
    ) -> Result[None, StoreError]: ...

    async def delete(self, key: str) -> Result[bool, StoreError]: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStore:
    """Single-process store. Records do not survive a restart."""

    def __init__(self) -> None:
        self._records: dict[str, IdempotencyRecord] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> IdempotencyRecord | None:
        record = self._records.get(key)
        if record is not None and record.is_expired:
            del self._records[key]
            return None
        return record

    async def get(self, key: str) -> Result[IdempotencyRecord | None, StoreError]:
        async with self._lock:
            return Ok(self._live(key))

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        async with self._lock:
            if self._live(key) is not None:
                return Ok(False)
            self._records[key] = IdempotencyRecord(
                key=key,
                state=RecordState.PENDING,
                expires_at=_expiry(ttl),
            )
            return Ok(True)

    async def set_completed(
        self, key: str, value: str, ttl: timedelta | None
    ) -> Result[None, StoreError]:
        async with self._lock:
            if key not in self._records:
                return Error(StoreError(f"No pending record for key: {key}"))
            self._records[key] = IdempotencyRecord(
                key=key, state=RecordState.COMPLETED, value=value, expires_at=_expiry(ttl)
            )
            return Ok(None)

    async def set_failed(
        self, key: str, error: str, ttl: timedelta | None
    ) -> Result[None, StoreError]:
        async with self._lock:
            if key not in self._records:
                return Error(StoreError(f"No pending record for key: {key}"))
            self._records[key] = IdempotencyRecord(
                key=key, state=RecordState.FAILED, error=error, expires_at=_expiry(ttl)
            )
            return Ok(None)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._records.pop(key, None) is not None)


def _expiry(ttl: timedelta | None) -> datetime | None:
    return datetime.now() + ttl if ttl else None


__all__ = ("StoreError", "Store", "MemoryStore")
