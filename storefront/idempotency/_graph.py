"""
Idempotency graph — record lookup and routing as nodnod nodes.

    IdempotencySpec (injected)
         │
         ▼
    SpecNode ──► FetchRecordNode
                       │
         ┌─────────────┼──────────────┬───────────────┐
         ▼             ▼              ▼               ▼
    CompletedRecord  FailedRecord  PendingRecord   NoRecord    StoreErrorNode
         │             │              │               │             │
         └─────────────┴──── IdempotencyOutcome (@polymorphic) ─────┘
                                      │
                                      ▼
                               FinalResultNode

Each state node raises NodeError unless its state holds, so exactly one
outcome case survives.

Note: no 'from __future__ import annotations', nodnod reads type hints
at runtime.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from kungfu import Result, Ok, Error
from nodnod import NodeError, polymorphic, case

from storefront import graph as G
from storefront.idempotency._policy import OnPending, Policy
from storefront.idempotency._store import Store, StoreError
from storefront.idempotency._types import (
    IdempotencyError,
    IdempotencyErrorKind,
    IdempotencyRecord,
    IdempotencyResult,
    RecordState,
)

type Operation = Callable[[Any], Awaitable[Result[str, Any]]]


# ═══════════════════════════════════════════════════════════════════════════════
# Input
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class IdempotencySpec:
    key: str
    input_value: Any
    operation: Operation
    store: Store
    policy: Policy


@G.node
class SpecNode:
    def __init__(self, spec: IdempotencySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, spec: IdempotencySpec) -> "SpecNode":
        return cls(spec)


@G.node
class FetchRecordNode:
    def __init__(
        self,
        record: IdempotencyRecord | None,
        spec: IdempotencySpec,
        store_error: StoreError | None = None,
    ) -> None:
        self.record = record
        self.spec = spec
        self.store_error = store_error

    @classmethod
    async def __compose__(cls, spec_node: SpecNode) -> "FetchRecordNode":
        spec = spec_node.spec
        match await spec.store.get(spec.key):
            case Ok(record):
                return cls(record, spec)
            case Error(err):
                return cls(None, spec, store_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes
# ═══════════════════════════════════════════════════════════════════════════════


def _require(fetch: FetchRecordNode, state: RecordState) -> IdempotencyRecord:
    record = fetch.record
    if record is None:
        raise NodeError("No record")
    if record.state != state:
        raise NodeError(f"Not {state.name.lower()}")
    return record


@G.node
class CompletedRecordNode:
    def __init__(self, record: IdempotencyRecord, spec: IdempotencySpec) -> None:
        self.record = record
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "CompletedRecordNode":
        return cls(_require(fetch, RecordState.COMPLETED), fetch.spec)


@G.node
class FailedRecordNode:
    def __init__(self, record: IdempotencyRecord, spec: IdempotencySpec) -> None:
        self.record = record
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "FailedRecordNode":
        return cls(_require(fetch, RecordState.FAILED), fetch.spec)


@G.node
class PendingRecordNode:
    def __init__(self, record: IdempotencyRecord, spec: IdempotencySpec) -> None:
        self.record = record
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "PendingRecordNode":
        return cls(_require(fetch, RecordState.PENDING), fetch.spec)


@G.node
class NoRecordNode:
    def __init__(self, spec: IdempotencySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "NoRecordNode":
        if fetch.store_error is not None:
            raise NodeError("Store error")
        if fetch.record is not None:
            raise NodeError("Record exists")
        return cls(fetch.spec)


@G.node
class StoreErrorNode:
    def __init__(self, error: StoreError) -> None:
        self.error = error

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "StoreErrorNode":
        if fetch.store_error is None:
            raise NodeError("No store error")
        return cls(fetch.store_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OutcomeOk:
    value: str
    from_cache: bool
    key: str


@dataclass(frozen=True)
class OutcomeError:
    kind: IdempotencyErrorKind
    message: str
    original_error: Any = None


type Outcome = OutcomeOk | OutcomeError


def _store_failed(err: StoreError) -> OutcomeError:
    return OutcomeError(IdempotencyErrorKind.STORE_ERROR, err.message, err.cause)


async def _execute(spec: IdempotencySpec) -> Outcome:
    """Run the operation once the key is owned; record how it went."""
    try:
        result = await spec.operation(spec.input_value)
    except Exception as e:
        await spec.store.delete(spec.key)
        return OutcomeError(IdempotencyErrorKind.EXECUTION, str(e), e)

    match result:
        case Ok(value):
            match await spec.store.set_completed(spec.key, value, spec.policy.result_ttl):
                case Ok(_):
                    return OutcomeOk(value=value, from_cache=False, key=spec.key)
                case Error(err):
                    return _store_failed(err)
        case Error(err):
            if spec.policy.persist_failed:
                await spec.store.set_failed(spec.key, str(err), spec.policy.result_ttl)
            else:
                await spec.store.delete(spec.key)
            return OutcomeError(
                IdempotencyErrorKind.EXECUTION, "Operation returned Error", err
            )


@polymorphic[Outcome]
class IdempotencyOutcome:
    """Routes on whichever state node survived."""

    @case
    def store_error(cls, node: StoreErrorNode) -> Outcome:
        return _store_failed(node.error)

    @case
    def cached_completed(cls, node: CompletedRecordNode) -> Outcome:
        return OutcomeOk(value=node.record.value or "", from_cache=True, key=node.spec.key)

    @case
    def cached_failed(cls, node: FailedRecordNode) -> Outcome:
        return OutcomeError(
            IdempotencyErrorKind.EXECUTION, "Cached failure", node.record.error
        )

    @case
    def pending_conflict(cls, node: PendingRecordNode) -> Outcome:
        if node.spec.policy.on_pending != OnPending.FAIL:
            raise NodeError("Policy not FAIL")
        return OutcomeError(
            IdempotencyErrorKind.CONFLICT, f"Pending conflict: {node.spec.key}"
        )

    @case
    async def pending_wait(cls, node: PendingRecordNode) -> Outcome:
        spec = node.spec
        if spec.policy.on_pending != OnPending.WAIT:
            raise NodeError("Policy not WAIT")

        timeout = spec.policy.pending_wait_timeout.total_seconds()
        interval = spec.policy.poll_interval.total_seconds()
        elapsed = 0.0

        while elapsed < timeout:
            await asyncio.sleep(interval)
            elapsed += interval

            match await spec.store.get(spec.key):
                case Error(err):
                    return _store_failed(err)
                case Ok(None):
                    # Previous attempt failed and released the key
                    return OutcomeError(
                        IdempotencyErrorKind.CONFLICT, "Pending operation was abandoned"
                    )
                case Ok(record) if record.state == RecordState.COMPLETED:
                    return OutcomeOk(value=record.value or "", from_cache=True, key=spec.key)
                case Ok(record) if record.state == RecordState.FAILED:
                    return OutcomeError(
                        IdempotencyErrorKind.EXECUTION,
                        "Operation failed while waiting",
                        record.error,
                    )

        return OutcomeError(
            IdempotencyErrorKind.TIMEOUT, "Timeout waiting for pending operation"
        )

    @case
    async def execute_new(cls, node: NoRecordNode) -> Outcome:
        spec = node.spec
        match await spec.store.set_pending(spec.key, spec.policy.result_ttl):
            case Error(err):
                return _store_failed(err)
            case Ok(False):
                # Lost the race to a concurrent delivery
                match await spec.store.get(spec.key):
                    case Ok(record) if record is not None and record.state == RecordState.COMPLETED:
                        return OutcomeOk(value=record.value or "", from_cache=True, key=spec.key)
                    case _:
                        return OutcomeError(IdempotencyErrorKind.CONFLICT, "Race conflict")
            case Ok(_):
                return await _execute(spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Final
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FinalResultNode:
    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, outcome: IdempotencyOutcome) -> "FinalResultNode":
        return cls(outcome.value)

    def to_result(self) -> Result[IdempotencyResult, IdempotencyError]:
        match self.outcome:
            case OutcomeOk(value=v, from_cache=fc, key=k):
                return Ok(IdempotencyResult(value=v, from_cache=fc, key=k))
            case OutcomeError(kind=kind, message=msg, original_error=orig):
                return Error(IdempotencyError(kind=kind, message=msg, original_error=orig))


async def run_idempotent(spec: IdempotencySpec) -> Result[IdempotencyResult, IdempotencyError]:
    node = await G.run(FinalResultNode).inject(spec)
    return node.to_result()


__all__ = (
    "Operation",
    "IdempotencySpec",
    "SpecNode",
    "FetchRecordNode",
    "CompletedRecordNode",
    "FailedRecordNode",
    "PendingRecordNode",
    "NoRecordNode",
    "StoreErrorNode",
    "Outcome",
    "OutcomeOk",
    "OutcomeError",
    "IdempotencyOutcome",
    "FinalResultNode",
    "run_idempotent",
)
