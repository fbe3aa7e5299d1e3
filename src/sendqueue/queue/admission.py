"""Decides whether an outgoing message is deferred into the queue."""

from __future__ import annotations

import random
import string
import time
from datetime import UTC, datetime

from sendqueue.infrastructure.logger import logger
from sendqueue.queue.notifications import Notifications
from sendqueue.queue.settings import SettingsManager
from sendqueue.queue.store import QueueStore
from sendqueue.queue.types import MessagePayload, QueueItem


def generate_item_id() -> str:
    rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{int(time.time() * 1000)}-{rand}"


class Admission:
    def __init__(self, store: QueueStore, settings: SettingsManager, notifications: Notifications) -> None:
        self._store = store
        self._settings = settings
        self._notifications = notifications

    def should_intercept(self, bypass: bool = False) -> bool:
        """True when a message on the normal send path should be queued instead of sent."""
        settings = self._settings.current
        return settings.enabled and not settings.queue_on_enter and not bypass

    def try_enqueue(self, destination: str, payload: MessagePayload) -> QueueItem:
        """Append a new pending item to the end of the queue.

        Raises CapacityExceeded without touching the queue when it is full.
        """
        item = QueueItem(
            id=generate_item_id(),
            destination=destination,
            payload=payload,
            enqueued_at=datetime.now(UTC).isoformat(),
        )
        size = self._store.append(item, self._settings.current.max_queue_size)
        logger.info("Message queued", item_id=item.id, destination=destination, queue_size=size)
        self._notifications.queued(size)
        return item
