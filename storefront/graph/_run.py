"""
Graph runner — thin typed layer over nodnod.

The target node pulls in its dependencies; independent nodes may run
concurrently, so nodes that share a database session must be chained
explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════


class TypedScope:
    """nodnod.Scope with typed push/get."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "scope") -> None:
        self._scope = Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# Run
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Run[T]:
    """
    Awaitable run of one target node.

        placed = await run(PlacedOrderNode).given(request, tx)
        event = await run(FinalResultNode).inject_as(StoreAny, store)
    """

    target: type[T]
    injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject(self, value: object) -> Run[T]:
        """Inject under the value's runtime type."""
        return self.inject_as(cast(type[Any], type(value)), value)

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        return Run(self.target, (*self.injections, (typ, value)))

    def given(self, *values: object) -> Run[T]:
        run_: Run[T] = self
        for value in values:
            run_ = run_.inject(value)
        return run_

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self.target)})

        async with TypedScope(detail="run") as scope:
            for typ, value in self.injections:
                scope.inject(typ, value)

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await run_method(scope.inner, {})

            return scope.get(self.target)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


async def compose[T](target: type[T], *inputs: object) -> T:
    """One-shot: ``await compose(PlacedOrderNode, request, tx)``."""
    return await run(target).given(*inputs)


__all__ = ("TypedScope", "Run", "run", "compose")
