"""Interval timers as background asyncio tasks."""
from __future__ import annotations

import asyncio
import logging

from foodshare_client.application.ports.scheduler import TickCallback

logger = logging.getLogger(__name__)


class IntervalTimer:
    """Runs ``callback`` every ``interval`` seconds until cancelled.

    A failing callback is logged and the timer keeps going.
    """

    def __init__(self, interval: float, callback: TickCallback, name: str) -> None:
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] = asyncio.create_task(self._run(), name=name)

    @property
    def active(self) -> bool:
        return not self._task.done()

    def cancel(self) -> None:
        if self._task.done():
            return
        self._task.cancel()
        logger.debug("Timer %s cancelled", self._name)

    async def wait_closed(self) -> None:
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Timer %s tick failed", self._name)


class AsyncioScheduler:
    """Implements application.ports.scheduler.Scheduler on the running loop."""

    def __init__(self) -> None:
        self._timers: set[IntervalTimer] = set()

    def every(self, interval: float, callback: TickCallback, *, name: str) -> IntervalTimer:
        timer = IntervalTimer(interval, callback, name)
        self._timers = {t for t in self._timers if t.active}
        self._timers.add(timer)
        return timer

    @property
    def active_count(self) -> int:
        return sum(1 for t in self._timers if t.active)

    async def shutdown(self) -> None:
        """Cancel every timer still running and wait for them to finish."""
        timers, self._timers = self._timers, set()
        for timer in timers:
            timer.cancel()
        for timer in timers:
            await timer.wait_closed()
