"""Periodic timer for background services."""

from __future__ import annotations

import asyncio

from typing import TYPE_CHECKING

from bitmemes.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


logger = get_logger(__name__)


class PeriodicTask:
    """Fire an async callback every ``interval`` seconds.

    Each firing runs as its own task, so a slow run never delays the timer.
    Overlap is the callback's concern: services guard their ``tick`` with a
    running flag, which turns an overlapping firing into a no-op instead of
    queueing it.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
    ) -> None:
        """Initialize the timer.

        Args:
            name: Label used in log messages.
            interval: Seconds between firings.
            callback: Coroutine function invoked on every firing.

        Raises:
            ValueError: If interval is not positive.
        """
        if interval <= 0:
            msg = f"{name} interval must be positive, got {interval}"
            raise ValueError(msg)

        self.name = name
        self.interval = interval
        self.callback = callback
        self.fired = 0

        self._loop_task: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def is_started(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        """Start firing; the first firing happens immediately."""
        if self.is_started:
            return
        self._loop_task = asyncio.create_task(self._run(), name=f"{self.name}-timer")
        logger.info("%s started (every %ss)", self.name, self.interval)

    async def stop(self) -> None:
        """Stop the timer and wait for in-flight firings to finish."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._in_flight:
            logger.info(
                "%s waiting for %d in-flight run(s)", self.name, len(self._in_flight)
            )
            await asyncio.gather(*self._in_flight, return_exceptions=True)

        logger.info("%s stopped", self.name)

    async def _run(self) -> None:
        while True:
            task = asyncio.create_task(self._fire(), name=f"{self.name}-run")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            await asyncio.sleep(self.interval)

    async def _fire(self) -> None:
        self.fired += 1
        try:
            await self.callback()
        except Exception:
            logger.exception("%s run failed", self.name)


__all__ = ["PeriodicTask"]
