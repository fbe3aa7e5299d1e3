"""Queue error taxonomy."""

from __future__ import annotations

from typing import Any


class QueueError(Exception):
    """Base error for expected queue failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class CapacityExceeded(QueueError):
    """Admission refused because the queue is at max_queue_size."""

    def __init__(self, max_queue_size: int) -> None:
        super().__init__(f"Queue full! Max {max_queue_size} messages", {"max_queue_size": max_queue_size})
        self.max_queue_size = max_queue_size


class TransmissionFailure(QueueError):
    """A single send attempt failed."""


class AbandonedAfterRetries(QueueError):
    """An item was dropped after exhausting its attempts."""

    def __init__(self, item_id: str, attempts: int, last_error: str | None = None) -> None:
        super().__init__(
            f"Failed to send message after {attempts} attempts",
            {"item_id": item_id, "attempts": attempts, "last_error": last_error},
        )


class PersistenceCorrupt(QueueError):
    """Persisted state could not be decoded."""


class UnknownSettingError(QueueError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown setting: {key}", {"key": key})


class InvalidSettingError(QueueError):
    def __init__(self, key: str, value: Any, reason: str) -> None:
        super().__init__(f"Invalid value for setting {key}: {reason}", {"key": key, "value": value})
