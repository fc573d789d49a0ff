"""
Idempotency types — records and outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any


class RecordState(Enum):
    """
    Lifecycle:
        PENDING → COMPLETED
                → FAILED (only when the policy persists failures)
                → (deleted)
    """

    PENDING = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass(frozen=True, slots=True)
class IdempotencyRecord:
    key: str
    state: RecordState
    value: str | None = None
    error: str | None = None
    expires_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and datetime.now() > self.expires_at


@dataclass(frozen=True, slots=True)
class IdempotencyResult:
    """``from_cache`` is True when the operation did not run this time."""

    value: str
    from_cache: bool
    key: str


class IdempotencyErrorKind(Enum):
    CONFLICT = auto()  # same key in flight
    TIMEOUT = auto()  # waited for pending too long
    STORE_ERROR = auto()
    EXECUTION = auto()  # wrapped operation failed


@dataclass(frozen=True, slots=True)
class IdempotencyError:
    kind: IdempotencyErrorKind
    message: str
    original_error: Any = None


__all__ = (
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyErrorKind",
    "IdempotencyError",
)
