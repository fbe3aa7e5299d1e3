"""Ordered in-memory queue of deferred messages with durable persistence."""

from __future__ import annotations

import sqlite3
import threading
from typing import Callable

from pydantic import TypeAdapter, ValidationError

from sendqueue.infrastructure.config import QUEUE_STATE_KEY
from sendqueue.infrastructure.logger import logger
from sendqueue.infrastructure.state_repo import StateRepository
from sendqueue.queue.errors import CapacityExceeded, PersistenceCorrupt
from sendqueue.queue.types import ItemStatus, QueueItem

_ITEMS_ADAPTER: TypeAdapter[list[QueueItem]] = TypeAdapter(list[QueueItem])


def encode_items(items: list[QueueItem]) -> str:
    return _ITEMS_ADAPTER.dump_json(items).decode()


def decode_items(raw: str) -> list[QueueItem]:
    """Decode a stored queue. Items persisted mid-send come back as pending."""
    try:
        items = _ITEMS_ADAPTER.validate_json(raw)
    except ValidationError as err:
        raise PersistenceCorrupt("Stored queue could not be decoded", {"errors": err.error_count()}) from err
    return [item.model_copy(update={"status": "pending"}) if item.status == "sending" else item for item in items]


class QueueStore:
    """Owns the live ordered sequence of QueueItems.

    Items are immutable; every mutation swaps in a new item under the lock, so
    snapshots handed out to callers can never alter the live sequence.
    """

    def __init__(
        self,
        repo: StateRepository,
        key: str = QUEUE_STATE_KEY,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._repo = repo
        self._key = key
        self._items: list[QueueItem] = []
        self._lock = threading.RLock()
        self._on_change = on_change

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def snapshot(self) -> list[QueueItem]:
        with self._lock:
            return list(self._items)

    def get(self, item_id: str) -> QueueItem | None:
        with self._lock:
            return next((item for item in self._items if item.id == item_id), None)

    def append(self, item: QueueItem, max_size: int) -> int:
        """Append ``item`` unless the queue already holds ``max_size`` items. Returns the new length."""
        with self._lock:
            if len(self._items) >= max_size:
                raise CapacityExceeded(max_size)
            self._items.append(item)
            size = len(self._items)
            self.save()
        self._changed()
        return size

    def claim_next_pending(self) -> QueueItem | None:
        """Mark the first pending item as sending.

        Returns None when nothing is pending or another item is already sending.
        """
        with self._lock:
            if any(item.status == "sending" for item in self._items):
                return None
            for idx, item in enumerate(self._items):
                if item.status == "pending":
                    claimed = item.model_copy(update={"status": "sending"})
                    self._items[idx] = claimed
                    break
            else:
                return None
            self.save()
        self._changed()
        return claimed

    def update_status(self, item_id: str, status: ItemStatus, error: str | None = None) -> QueueItem | None:
        """Set an item's status. ``last_error`` is kept only for failed items."""
        with self._lock:
            for idx, item in enumerate(self._items):
                if item.id == item_id:
                    updated = QueueItem.model_validate(
                        {
                            **item.model_dump(),
                            "status": status,
                            "last_error": error if status == "failed" else None,
                        }
                    )
                    self._items[idx] = updated
                    break
            else:
                return None
            self.save()
        self._changed()
        return updated

    def record_failure(self, item_id: str, error: str) -> QueueItem | None:
        """Mark an item failed and count the attempt that just failed."""
        with self._lock:
            for idx, item in enumerate(self._items):
                if item.id == item_id:
                    failed = item.model_copy(update={"status": "failed", "attempts": item.attempts + 1, "last_error": error})
                    self._items[idx] = failed
                    break
            else:
                return None
            self.save()
        self._changed()
        return failed

    def remove(self, item_id: str) -> bool:
        """Remove an item. Removing an absent id is a no-op."""
        with self._lock:
            remaining = [item for item in self._items if item.id != item_id]
            if len(remaining) == len(self._items):
                return False
            self._items = remaining
            self.save()
        self._changed()
        return True

    def clear(self) -> int:
        with self._lock:
            count = len(self._items)
            self._items = []
            self.save()
        self._changed()
        return count

    def load(self) -> None:
        """Replace the in-memory queue with the persisted one. Corrupt state loads as empty."""
        raw = self._repo.get_state(self._key)
        items: list[QueueItem] = []
        if raw is not None:
            try:
                items = decode_items(raw)
            except PersistenceCorrupt as err:
                logger.warning("Stored queue is corrupt, starting empty", key=self._key, **err.details)
        with self._lock:
            self._items = items
        logger.info("Queue loaded", key=self._key, size=len(items))
        self._changed()

    def save(self) -> None:
        with self._lock:
            payload = encode_items(self._items)
        try:
            self._repo.set_state(self._key, payload)
        except sqlite3.Error:
            logger.exception("Failed to save queue", key=self._key)

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception:
            logger.exception("Queue change listener failed")

