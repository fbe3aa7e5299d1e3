"""Shared async polling loop abstraction."""

from __future__ import annotations

import asyncio
from typing import Callable, Awaitable

from sendqueue.infrastructure.logger import logger


class PollLoop:
    """An async polling loop that calls a function at regular intervals.

    Stopping wakes the loop out of its sleep but never interrupts a call to
    ``fn`` that is already running; ``stop`` waits for it to settle.
    """

    def __init__(self, name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> None:
        self._name = name
        self._interval = interval_s
        self._fn = fn
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        """Start the polling loop as a background task."""
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"{self._name} loop started", interval_s=self._interval)

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the polling loop, letting an in-progress call finish.

        If the call has not finished after ``timeout`` seconds the task is cancelled.
        """
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self._name} loop did not settle before timeout, cancelled", timeout_s=timeout)
        except asyncio.CancelledError:
            pass
        logger.info(f"{self._name} loop stopped")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self._fn()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception(f"Error in {self._name} loop")
            if self._stop_event.is_set():
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass


def start_poll_loop(name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> PollLoop:
    """Create and start a polling loop. Returns a handle to stop it."""
    loop = PollLoop(name, interval_s, fn)
    loop.start()
    return loop
