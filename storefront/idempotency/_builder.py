"""
Idempotency builder — fluent API over the graph.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from kungfu import LazyCoroResult, Result

from storefront.idempotency._graph import IdempotencySpec, Operation, run_idempotent
from storefront.idempotency._policy import Policy
from storefront.idempotency._store import MemoryStore, Store
from storefront.idempotency._types import IdempotencyError, IdempotencyResult

type KeyFn[K] = Callable[[K], str]


@dataclass(slots=True, frozen=True)
class Idempotent[K]:
    operation: Operation
    key_fn: KeyFn[K] | None = None
    store_: Store | None = None
    policy_: Policy = Policy()

    def key(self, fn: KeyFn[K]) -> Idempotent[K]:
        return replace(self, key_fn=fn)

    def store(self, s: Store) -> Idempotent[K]:
        return replace(self, store_=s)

    def policy(self, p: Policy) -> Idempotent[K]:
        return replace(self, policy_=p)

    def build(self) -> IdempotentExecutor[K]:
        if self.key_fn is None:
            raise ValueError("key() is required")
        return IdempotentExecutor(
            operation=self.operation,
            key_fn=self.key_fn,
            store=self.store_ if self.store_ is not None else MemoryStore(),
            policy=self.policy_,
        )


@dataclass(slots=True, frozen=True)
class IdempotentExecutor[K]:
    operation: Operation
    key_fn: KeyFn[K]
    store: Store
    policy: Policy

    def run(self, input_val: K) -> LazyCoroResult[IdempotencyResult, IdempotencyError]:
        spec = IdempotencySpec(
            key=self.key_fn(input_val),
            input_value=input_val,
            operation=self.operation,
            store=self.store,
            policy=self.policy,
        )

        async def execute() -> Result[IdempotencyResult, IdempotencyError]:
            return await run_idempotent(spec)

        return LazyCoroResult(execute)


def idempotent[K](operation: Callable[[K], Any]) -> Idempotent[K]:
    """
    Example:
        executor = (
            I.idempotent(apply_event)
            .key(lambda event: f"event:{event.id}")
            .store(store)
            .policy(I.Policy().with_ttl(hours=72).with_on_pending(I.FAIL))
            .build()
        )

        match await executor.run(event):
            case Ok(r) if r.from_cache: ...   # seen before
            case Ok(r): ...                   # applied now
            case Error(e): ...
    """
    return Idempotent(operation=operation)


__all__ = ("Idempotent", "IdempotentExecutor", "idempotent")
