"""
Runs a nodnod graph to one target node.

A node lists what it needs as `__compose__` parameters; plain inputs are
matched by their runtime type.

    @node
    class Subtotal:
        def __init__(self, value: Decimal) -> None:
            self.value = value

        @classmethod
        async def __compose__(cls, lines: LinesNode) -> "Subtotal":
            return cls(sum(l.total for l in lines.value))

    subtotal = await compose(Subtotal, request)
"""

from __future__ import annotations

from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node
from nodnod import scalar_node as node

type _AgentRun = Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]]


def _resolved[T](scope: Scope, target: type[T]) -> T:
    found = scope.get(target)
    if found is None:
        raise LookupError(f"graph finished without producing {target.__name__}")
    return cast(T, found.value)


async def compose[T](target: type[T], *inputs: object, detail: str = "compose") -> T:
    """Resolve `target` and everything it depends on; siblings run concurrently."""
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    scope = Scope(detail=detail)

    async with scope:
        for value in inputs:
            scope.push(Value(type(value), value))
        agent_run = cast(_AgentRun, getattr(agent, "run"))
        await agent_run(scope, {})
        return _resolved(scope, target)


__all__ = ("node", "compose")
