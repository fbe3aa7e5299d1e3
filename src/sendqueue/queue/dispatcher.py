"""Paced background sender that drains the queue one item at a time."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from sendqueue.infrastructure.config import MAX_ATTEMPTS
from sendqueue.infrastructure.logger import logger
from sendqueue.queue.errors import AbandonedAfterRetries, TransmissionFailure
from sendqueue.queue.notifications import Notifications
from sendqueue.queue.settings import SettingsManager
from sendqueue.queue.store import QueueStore
from sendqueue.queue.types import QueueItem, Transport


class Dispatcher:
    """Drives items through pending -> sending -> removed | failed -> pending.

    ``tick`` is meant to be called on a fixed cadence. At most one send is in
    flight per dispatcher; a tick that arrives while one is outstanding does
    nothing. A failed item goes back to pending once ``delay_ms`` has passed
    since the failure, and is dropped after ``max_attempts`` failures.
    """

    def __init__(
        self,
        store: QueueStore,
        settings: SettingsManager,
        transport: Transport,
        notifications: Notifications,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._settings = settings
        self._transport = transport
        self._notifications = notifications
        self._max_attempts = max_attempts
        self._clock = clock
        self._sleep = sleep
        self._paused = False
        self._in_flight = False
        self._retry_at: dict[str, float] = {}

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def set_paused(self, paused: bool) -> None:
        self._paused = paused
        logger.info("Dispatcher paused" if paused else "Dispatcher resumed")

    def toggle_pause(self) -> bool:
        self.set_paused(not self._paused)
        return self._paused

    async def tick(self) -> None:
        settings = self._settings.current
        if self._in_flight or self._paused or not settings.auto_send or len(self._store) == 0:
            return

        self._requeue_due_failures()
        item = self._store.claim_next_pending()
        if item is None:
            return

        self._in_flight = True
        try:
            await self._deliver(item)
        finally:
            self._in_flight = False
            current = self._store.get(item.id)
            if current is not None and current.status == "sending":
                # Interrupted before an outcome was recorded.
                self._store.update_status(item.id, "pending")

    async def _deliver(self, item: QueueItem) -> None:
        # Pacing throttle, applied before every send regardless of history.
        await self._sleep(self._settings.current.delay_ms / 1000)

        if self._store.get(item.id) is None:
            logger.info("Item removed while waiting to send, skipping", item_id=item.id)
            return

        logger.debug("Sending queued message", item_id=item.id, destination=item.destination, attempt=item.attempts + 1)
        try:
            result = await self._transport.send(item.destination, item.payload)
            if result is False:
                raise TransmissionFailure("Transport reported failure", {"item_id": item.id})
        except Exception as err:
            self._handle_failure(item, err)
            return

        self._retry_at.pop(item.id, None)
        self._store.remove(item.id)
        remaining = len(self._store)
        logger.info("Queued message sent", item_id=item.id, attempts=item.attempts + 1, remaining=remaining)
        self._notifications.sent(remaining)

    def _handle_failure(self, item: QueueItem, err: Exception) -> None:
        error = str(err) or type(err).__name__
        failed = self._store.record_failure(item.id, error)
        if failed is None:
            logger.info("Send failed for item no longer queued", item_id=item.id, error=error)
            return

        if failed.attempts >= self._max_attempts:
            self._retry_at.pop(item.id, None)
            self._store.remove(item.id)
            abandoned = AbandonedAfterRetries(item.id, failed.attempts, error)
            logger.error(str(abandoned), **abandoned.details)
            self._notifications.abandoned(abandoned)
            return

        self._retry_at[item.id] = self._clock() + self._settings.current.delay_ms / 1000
        logger.warning("Send attempt failed", item_id=item.id, attempts=failed.attempts, error=error)

    def _requeue_due_failures(self) -> None:
        now = self._clock()
        snapshot = self._store.snapshot()
        for stale in set(self._retry_at) - {item.id for item in snapshot}:
            del self._retry_at[stale]
        for item in snapshot:
            if item.status != "failed":
                continue
            # No record means the failure predates this process, so it is already due.
            due = self._retry_at.get(item.id)
            if due is None or now >= due:
                self._retry_at.pop(item.id, None)
                self._store.update_status(item.id, "pending")
