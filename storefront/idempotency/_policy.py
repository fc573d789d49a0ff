"""
Idempotency policy.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum, auto


class OnPending(Enum):
    """
    What to do when the same key is already in flight.

    WAIT: poll until it finishes and return its result.
    FAIL: return CONFLICT immediately.
    """

    WAIT = auto()
    FAIL = auto()


WAIT = OnPending.WAIT
FAIL = OnPending.FAIL


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Immutable; every ``with_*`` returns a new Policy.

        policy = Policy().with_ttl(hours=72).with_on_pending(FAIL)
    """

    result_ttl: timedelta | None = None
    on_pending: OnPending = OnPending.WAIT
    pending_wait_timeout: timedelta = timedelta(seconds=30)
    poll_interval: timedelta = timedelta(milliseconds=100)
    # False: a failed run leaves no record, so a retry executes again
    persist_failed: bool = False

    def with_ttl(
        self,
        *,
        seconds: float = 0,
        minutes: float = 0,
        hours: float = 0,
    ) -> Policy:
        total = seconds + minutes * 60 + hours * 3600
        return replace(self, result_ttl=timedelta(seconds=total) if total > 0 else None)

    def with_on_pending(self, strategy: OnPending) -> Policy:
        return replace(self, on_pending=strategy)

    def with_wait_timeout(self, *, seconds: float) -> Policy:
        return replace(self, pending_wait_timeout=timedelta(seconds=seconds))

    def with_persist_failed(self, persist: bool = True) -> Policy:
        return replace(self, persist_failed=persist)


__all__ = ("OnPending", "WAIT", "FAIL", "Policy")
