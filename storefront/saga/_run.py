"""
Saga execution with reverse-order compensation.
"""

from __future__ import annotations

from typing import Any

from kungfu import Result, Ok, Error

from storefront.logging import get_logger
from storefront.saga._types import SagaStep, Then, Saga, SagaResult, SagaError, Compensator

logger = get_logger("saga")

# ═══════════════════════════════════════════════════════════════════════════════
# Recorded Compensator
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator = tuple[str, Any, Compensator[Any]]

# ═══════════════════════════════════════════════════════════════════════════════
# run_step()
# ═══════════════════════════════════════════════════════════════════════════════


async def run_step[T, E](
    step: SagaStep[T, E],
    compensators: list[RecordedCompensator],
) -> Result[T, E]:
    """Execute one step, recording its compensator on success."""
    result = await step.action
    match result:
        case Ok(value):
            if step.compensate is not None:
                compensators.append((step.name, value, step.compensate))
            return Ok(value)
        case Error(e):
            return Error(e)


# ═══════════════════════════════════════════════════════════════════════════════
# run_compensators()
# ═══════════════════════════════════════════════════════════════════════════════


async def run_compensators(compensators: list[RecordedCompensator]) -> tuple[int, int]:
    """Run compensators newest-first. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
        except Exception:
            comp_failed += 1
            logger.exception("compensation_failed", step=name)

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run()
# ═══════════════════════════════════════════════════════════════════════════════


async def _walk(
    saga: Saga[Any, Any],
    compensators: list[RecordedCompensator],
    counter: list[int],
) -> Result[Any, Any]:
    match saga:
        case SagaStep():
            counter[0] += 1
            return await run_step(saga, compensators)
        case Then(inner=inner, f=f):
            match await _walk(inner, compensators, counter):
                case Ok(value):
                    counter[0] += 1
                    return await run_step(f(value), compensators)
                case Error(e):
                    return Error(e)


async def run[T, E](saga: Saga[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    """
    Run a step or a ``.then()`` chain of any length.

    On failure every recorded compensator runs in reverse order.

    Example:
        from storefront import saga as S

        checkout = (
            S.from_result(place_order, compensate=lambda _: tx.rollback(), name="place")
            .then(lambda placed: S.from_result(open_session(placed), name="session"))
            .then(lambda placed: S.from_result(commit(placed), name="commit"))
        )

        match await S.run(checkout):
            case Ok(r):
                print(r.value)
            case Error(e):
                print(f"failed at step {e.step_failed}: {e.error}")
    """
    compensators: list[RecordedCompensator] = []
    counter = [0]

    match await _walk(saga, compensators, counter):
        case Ok(value):
            return Ok(SagaResult(
                value=value,
                steps_executed=counter[0],
                compensators_recorded=len(compensators),
            ))
        case Error(error):
            comp_run, comp_failed = await run_compensators(compensators)
            return Error(SagaError(
                error=error,
                step_failed=counter[0],
                compensators_run=comp_run,
                compensators_failed=comp_failed,
            ))


__all__ = ("run", "run_step", "run_compensators")
