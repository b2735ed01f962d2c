"""
Named steps with undo actions.

    placed = (
        step("reserve pillar", reserve(a), undo=restock)
        .then(lambda _: step("take payment", capture(intent)))
    )
    match await run(placed):
        case Ok(done):
            done.value
        case Error(failed):
            failed.step, failed.error, failed.undone

A failing step ends the chain and the undo of every step that already
succeeded runs, latest first. A step without an undo cannot be taken back.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from kungfu import Result, Ok, Error, LazyCoroResult

logger = logging.getLogger(__name__)

type Undo[T] = Callable[[T], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    name: str
    action: LazyCoroResult[T, E]
    undo: Undo[T] | None = None

    def then[U](self, f: Callable[[T], SagaExpr[U, E]]) -> Then[T, U, E]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U, E]:
    before: SagaExpr[T, E]
    f: Callable[[T], SagaExpr[U, E]]

    def then[V](self, f: Callable[[U], SagaExpr[V, E]]) -> Then[U, V, E]:
        return Then(self, f)


type SagaExpr[T, E] = SagaStep[T, E] | Then[Any, T, E]


def step[T, E](name: str, action: LazyCoroResult[T, E], undo: Undo[T] | None = None) -> SagaStep[T, E]:
    return SagaStep(name, action, undo)


@dataclass(frozen=True, slots=True)
class Completed[T]:
    value: T
    steps: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Failed[E]:
    error: E
    step: str
    undone: tuple[str, ...]
    undo_failed: tuple[str, ...]

    @property
    def rolled_back(self) -> bool:
        return not self.undo_failed


class _Ledger:
    """Steps that went through, with the undo actions they left behind."""

    __slots__ = ("done", "_pending")

    def __init__(self) -> None:
        self.done: list[str] = []
        self._pending: list[tuple[str, Any, Undo[Any]]] = []

    def record(self, done: SagaStep[Any, Any], value: object) -> None:
        self.done.append(done.name)
        if done.undo is not None:
            self._pending.append((done.name, value, done.undo))

    async def rollback(self) -> tuple[tuple[str, ...], tuple[str, ...]]:
        undone: list[str] = []
        failed: list[str] = []
        for name, value, undo in reversed(self._pending):
            try:
                await undo(value)
            except Exception:
                logger.exception("undo of %r failed", name)
                failed.append(name)
            else:
                undone.append(name)
        self._pending.clear()
        return tuple(undone), tuple(failed)


async def run[T, E](saga: SagaExpr[T, E]) -> Result[Completed[T], Failed[E]]:
    ledger = _Ledger()

    async def go(expr: SagaExpr[Any, E]) -> Result[Any, tuple[str, E]]:
        if isinstance(expr, Then):
            match await go(expr.before):
                case Ok(value):
                    return await go(expr.f(value))
                case failure:
                    return failure

        match await expr.action:
            case Ok(value):
                ledger.record(expr, value)
                return Ok(value)
            case Error(e):
                return Error((expr.name, e))

    match await go(saga):
        case Ok(value):
            return Ok(Completed(value, tuple(ledger.done)))
        case Error((name, error)):
            undone, undo_failed = await ledger.rollback()
            return Error(Failed(error, name, undone, undo_failed))


__all__ = ("Undo", "SagaStep", "Then", "SagaExpr", "step", "Completed", "Failed", "run")
