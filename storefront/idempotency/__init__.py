"""
Idempotency — run an operation at most once per key.

    from storefront import idempotency as I

    executor = (
        I.idempotent(apply_event)
        .key(lambda event: event.id)
        .store(I.MemoryStore())
        .policy(I.Policy().with_ttl(hours=72).with_on_pending(I.FAIL))
        .build()
    )
    result = await executor.run(event)

Stored values are strings; callers encode whatever they need.
"""

from storefront.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    IdempotencyResult,
    IdempotencyError,
    IdempotencyErrorKind,
)
from storefront.idempotency._store import Store, StoreError, MemoryStore
from storefront.idempotency._policy import Policy, OnPending, WAIT, FAIL
from storefront.idempotency._sqlalchemy import (
    IdempotencyMixin,
    IdempotencyStatus,
    SQLAlchemyStore,
)
from storefront.idempotency._graph import (
    Operation,
    IdempotencySpec,
    run_idempotent,
    Outcome,
    OutcomeOk,
    OutcomeError,
    IdempotencyOutcome,
    FinalResultNode,
)
from storefront.idempotency._builder import idempotent, Idempotent, IdempotentExecutor

__all__ = (
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyError",
    "IdempotencyErrorKind",
    "Store",
    "StoreError",
    "MemoryStore",
    "Policy",
    "OnPending",
    "WAIT",
    "FAIL",
    "IdempotencyMixin",
    "IdempotencyStatus",
    "SQLAlchemyStore",
    "Operation",
    "IdempotencySpec",
    "run_idempotent",
    "Outcome",
    "OutcomeOk",
    "OutcomeError",
    "IdempotencyOutcome",
    "FinalResultNode",
    "idempotent",
    "Idempotent",
    "IdempotentExecutor",
)
