"""Application invalidation – InvalidationScheduler."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from notify_commons.application.invalidation.manager import InvalidationManager
from notify_commons.kernel.time import Clock, SystemClock

logger = logging.getLogger(__name__)

__all__ = ["InvalidationScheduler"]


class InvalidationScheduler:
    """Runs named periodic or delayed invalidations on the caller's event loop.

    Scheduling a name that already exists replaces the previous job.
    """

    def __init__(self, manager: InvalidationManager, *, clock: Clock | None = None) -> None:
        self._manager = manager
        self._clock = clock or SystemClock()
        self._jobs: dict[str, asyncio.Task[None]] = {}

    @property
    def names(self) -> list[str]:
        return [name for name, task in self._jobs.items() if not task.done()]

    def schedule_pattern(self, name: str, pattern: str, interval: float) -> None:
        """Invalidate *pattern* every *interval* seconds."""
        self._spawn(name, self._every(name, interval, lambda: self._manager.invalidate_by_pattern(pattern)))

    def schedule_pattern_at(self, name: str, pattern: str, when: datetime) -> None:
        """Invalidate *pattern* once at *when* (immediately if already past)."""
        delay = max(0.0, when.timestamp() - self._clock.timestamp())
        self._spawn(name, self._once(name, delay, lambda: self._manager.invalidate_by_pattern(pattern)))

    def schedule_sweep(self, interval: float, name: str = "pending-sweep") -> None:
        """Retry incomplete invalidations every *interval* seconds."""
        self._spawn(name, self._every(name, interval, self._manager.retry_pending))

    def cancel(self, name: str) -> bool:
        task = self._jobs.pop(name, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def cancel_all(self) -> None:
        tasks = list(self._jobs.values())
        self._jobs.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _spawn(self, name: str, coro: Awaitable[None]) -> None:
        self.cancel(name)
        self._jobs[name] = asyncio.ensure_future(coro)

    async def _every(self, name: str, interval: float, action: Callable[[], Awaitable[Any]]) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._run(name, action)

    async def _once(self, name: str, delay: float, action: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(delay)
        await self._run(name, action)
        self._jobs.pop(name, None)

    async def _run(self, name: str, action: Callable[[], Awaitable[Any]]) -> None:
        try:
            await action()
        except Exception as exc:  # noqa: BLE001
            logger.error("cache.scheduled_invalidation_failed job=%s error=%r", name, exc)
