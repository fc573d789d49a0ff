"""
Saga types — steps, chains and results.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable, Awaitable
from typing import Any

from kungfu import LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Compensator
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the step's value and undoes it."""

# ═══════════════════════════════════════════════════════════════════════════════
# SagaStep
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    Action plus optional compensator.

    The compensator is recorded once the action succeeds and runs if a
    later step fails.
    """

    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None
    name: str = "step"

    def then[U, E2](self, f: Callable[[T], SagaStep[U, E2]]) -> Then[U, E | E2]:
        return Then(self, f)


# ═══════════════════════════════════════════════════════════════════════════════
# Then — sequential composition of any length
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Then[U, E]:
    """``inner`` first, then the step built from its value."""

    inner: SagaStep[Any, Any] | Then[Any, Any]
    f: Callable[[Any], SagaStep[U, Any]]

    def then[V, E2](self, f: Callable[[U], SagaStep[V, E2]]) -> Then[V, E | E2]:
        return Then(self, f)


type Saga[T, E] = SagaStep[T, E] | Then[T, E]

# ═══════════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Failure with rollback bookkeeping."""

    error: E
    step_failed: int
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


__all__ = (
    "Compensator",
    "SagaStep",
    "Then",
    "Saga",
    "SagaResult",
    "SagaError",
)
