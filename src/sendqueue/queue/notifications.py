"""Operator-facing notification messages."""

from __future__ import annotations

from typing import Callable

from sendqueue.infrastructure.logger import logger
from sendqueue.queue.errors import AbandonedAfterRetries
from sendqueue.queue.types import Notifier, QueueSettings, Severity


class Notifications:
    """Turns queue events into Notifier calls.

    Routine events (queued, sent) respect ``show_notifications``; failures and
    operator actions are always surfaced. A failing notifier is logged and
    never propagates into the caller.
    """

    def __init__(self, notifier: Notifier | None, get_settings: Callable[[], QueueSettings]) -> None:
        self._notifier = notifier
        self._get_settings = get_settings

    def started(self) -> None:
        self._emit("Message Queue enabled!", "info")

    def queued(self, queue_size: int) -> None:
        if self._get_settings().show_notifications:
            self._emit(f"Queued! ({queue_size} total)", "success")

    def sent(self, remaining: int) -> None:
        if self._get_settings().show_notifications:
            self._emit(f"Message sent ({remaining} left in queue)", "success")

    def abandoned(self, error: AbandonedAfterRetries) -> None:
        self._emit(str(error), "failure")

    def queue_full(self, max_queue_size: int) -> None:
        self._emit(f"Queue full! Max {max_queue_size} messages", "failure")

    def pause_toggled(self, paused: bool) -> None:
        if paused:
            self._emit("Queue paused", "info")
        else:
            self._emit("Queue resumed", "success")

    def cleared(self, count: int) -> None:
        self._emit(f"Queue cleared ({count} removed)", "success")

    def _emit(self, message: str, severity: Severity) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(message, severity)
        except Exception:
            logger.exception("Notifier failed", message=message, severity=severity)
