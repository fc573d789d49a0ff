"""
Saga step constructors.
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable

from kungfu import LazyCoroResult, Result
from combinators import lift as L

from storefront.saga._types import SagaStep, Compensator

# ═══════════════════════════════════════════════════════════════════════════════
# step() — from a LazyCoroResult
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Example:
        from storefront import saga as S

        open_session = S.step(
            L.catching_async(
                lambda: processor.create_checkout_session(items, metadata),
                on_error=lambda e: Errors.processor_failure(),
            ),
            compensate=lambda s: processor.expire_session(s.id),
        )
    """
    return SagaStep(action=action, compensate=compensate, name=name)


# ═══════════════════════════════════════════════════════════════════════════════
# from_async() — raising callable
# ═══════════════════════════════════════════════════════════════════════════════


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """Exceptions from ``action`` become ``Error(on_error(exc))``."""
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# from_result() — Result-returning callable
# ═══════════════════════════════════════════════════════════════════════════════


def from_result[T, E](
    action: Callable[[], Awaitable[Result[T, E]]],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    return SagaStep(action=LazyCoroResult(action), compensate=compensate, name=name)


__all__ = ("step", "from_async", "from_result")
