"""Cancellable timers on top of the running asyncio loop.

Every timer the sync engine starts goes through a `Scheduler` so teardown can
cancel all of them in one call.
"""

import asyncio
from collections.abc import Awaitable, Callable

from pickersync.common.logging import logger


class DeferredTask:
    """One-shot callback scheduled with `loop.call_later`."""

    def __init__(self, scheduler: "Scheduler", delay: float, callback: Callable[[], None]) -> None:
        self._scheduler = scheduler
        self._callback = callback
        self._handle = asyncio.get_running_loop().call_later(delay, self._fire)

    def _fire(self) -> None:
        self._scheduler._forget(self)
        self._callback()

    def cancel(self) -> None:
        self._handle.cancel()
        self._scheduler._forget(self)

    def cancelled(self) -> bool:
        return self._handle.cancelled()


class PeriodicTask:
    """Run an async callable on a fixed period without overlapping runs.

    The first run happens one interval after creation. A run that overruns the
    period delays the next tick instead of stacking a second run behind it.
    """

    def __init__(self, scheduler: "Scheduler", interval: float, fn: Callable[[], Awaitable[object]], name: str) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._scheduler = scheduler
        self.interval = interval
        self.name = name
        self._fn = fn
        self._task = asyncio.get_running_loop().create_task(self._run(), name=name)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            try:
                await self._fn()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("periodic task failed name=%s", self.name)
            now = loop.time()
            next_at += self.interval
            if next_at < now:
                # Skip ticks missed while the run was outstanding.
                next_at = now + self.interval

    def cancel(self) -> None:
        self._task.cancel()
        self._scheduler._forget(self)

    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()


class Scheduler:
    """Factory and registry for the timers owned by one service instance."""

    def __init__(self) -> None:
        self._active: set[DeferredTask | PeriodicTask] = set()

    def call_later(self, delay: float, callback: Callable[[], None]) -> DeferredTask:
        task = DeferredTask(self, delay, callback)
        self._active.add(task)
        return task

    def every(self, interval: float, fn: Callable[[], Awaitable[object]], name: str = "periodic") -> PeriodicTask:
        task = PeriodicTask(self, interval, fn, name)
        self._active.add(task)
        return task

    def cancel_all(self) -> None:
        for task in list(self._active):
            task.cancel()
        self._active.clear()

    @property
    def pending(self) -> int:
        return len(self._active)

    def _forget(self, task: DeferredTask | PeriodicTask) -> None:
        self._active.discard(task)
