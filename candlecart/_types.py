"""
Core types for candlecart.

Re-exports from kungfu + shared aliases.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from decimal import Decimal

from kungfu import Result, Ok, Error, LazyCoroResult
from combinators import lift as L

from candlecart._errors import ShopError, StoreError

# ═══════════════════════════════════════════════════════════════════════════════
# Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Exact currency amount. Never a float."""

type Outcome[T] = Result[T, ShopError]
"""Result of any engine operation."""

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


# ═══════════════════════════════════════════════════════════════════════════════
# Lifting
# ═══════════════════════════════════════════════════════════════════════════════

def as_shop_error(e: Exception) -> ShopError:
    """Keep engine errors as-is, wrap everything else as a storage failure."""
    if isinstance(e, ShopError):
        return e
    return StoreError(f"{type(e).__name__}: {e}", e)


def guarded[T](fn: Callable[[], Awaitable[T]]) -> LazyCoroResult[T, ShopError]:
    """
    Lift an awaitable that may raise into a lazy Result.

        result = await guarded(lambda: gateway.retrieve_intent(intent_id))
    """
    return L.catching_async(fn, on_error=as_shop_error)


def lazy[T](fn: Callable[[], Awaitable[Result[T, ShopError]]]) -> LazyCoroResult[T, ShopError]:
    """Wrap a Result-returning coroutine function for combinators."""
    return LazyCoroResult(fn)


# ═══════════════════════════════════════════════════════════════════════════════
# Result boundary
# ═══════════════════════════════════════════════════════════════════════════════

def expect[T](result: Result[T, ShopError]) -> T:
    """Value of Ok, or raise the ShopError. Pair with @outcome."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise e


def outcome[**P, T](
    fn: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[Result[T, ShopError]]]:
    """
    Turn a step-by-step service method into one that returns Result.

    Inside, use `expect(...)` to take values and let a ShopError end the
    operation early; the caller only ever sees Ok or Error.

        @outcome
        async def add_item(self, ...) -> Cart:
            product = expect(await self._catalog.get(product_id))
            ...
    """
    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T, ShopError]:
        try:
            return Ok(await fn(*args, **kwargs))
        except ShopError as e:
            return Error(e)
    return wrapper


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    "Money",
    "Outcome",
    "Clock",
    "utcnow",
    "as_shop_error",
    "guarded",
    "lazy",
    "expect",
    "outcome",
)
