"""
Notifications: fire-and-forget.

A failed email never fails the request that triggered it; the failure is
logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Protocol

from candlecart.orders._types import Order

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_order_confirmation(self, order: Order) -> None: ...

    async def send_status_update(self, order: Order) -> None: ...

    async def send_payment_failed(self, order: Order, reason: str | None) -> None: ...


class LoggingNotifier:
    """Default notifier: writes what would have been sent to the log."""

    async def send_order_confirmation(self, order: Order) -> None:
        logger.info("order confirmation → %s: %s, total %s", order.email, order.number, order.total)

    async def send_status_update(self, order: Order) -> None:
        logger.info("status update → %s: %s is now %s", order.email, order.number, order.status)

    async def send_payment_failed(self, order: Order, reason: str | None) -> None:
        logger.info("payment failed → %s: %s (%s)", order.email, order.number, reason or "no reason")


class Notifications:
    """Schedules notifier calls in the background and keeps the tasks alive."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._tasks: set[asyncio.Task[None]] = set()

    def order_confirmed(self, order: Order) -> None:
        self._spawn("order confirmation", self._notifier.send_order_confirmation(order))

    def status_changed(self, order: Order) -> None:
        self._spawn("status update", self._notifier.send_status_update(order))

    def payment_failed(self, order: Order, reason: str | None) -> None:
        self._spawn("payment failure", self._notifier.send_payment_failed(order, reason))

    async def drain(self) -> None:
        """Wait for everything scheduled so far. Used on shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*self._tasks)

    def _spawn(self, what: str, call: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(self._deliver(what, call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, what: str, call: Coroutine[Any, Any, None]) -> None:
        try:
            await call
        except Exception:
            logger.exception("%s notification failed", what)


__all__ = ("Notifier", "LoggingNotifier", "Notifications")
