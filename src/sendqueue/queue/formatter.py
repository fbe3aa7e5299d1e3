"""Plain-text rendering of the queue for console presenters."""

from __future__ import annotations

from sendqueue.infrastructure.config import MAX_ATTEMPTS
from sendqueue.queue.types import QueueItem, QueueSettings

PREVIEW_LENGTH = 60


def format_queue(items: list[QueueItem], settings: QueueSettings, paused: bool = False) -> str:
    """Render the queue as a header line followed by one line per item."""
    header = f"Message Queue {len(items)}/{settings.max_queue_size}"
    if paused:
        header += " [paused]"
    if not settings.auto_send:
        header += " [auto-send off]"
    if not items:
        return f"{header}\nQueue is empty"
    return "\n".join([header, *(format_item(pos, item) for pos, item in enumerate(items, start=1))])


def format_item(position: int, item: QueueItem) -> str:
    line = f"{position:>3}. {item.status.upper():<7} {item.destination}: {_preview(item.payload.content)}"
    if item.attempts > 0:
        line += f" (Attempt {item.attempts}/{MAX_ATTEMPTS})"
    if item.last_error:
        line += f" - {item.last_error}"
    return line


def _preview(content: str) -> str:
    flat = " ".join(content.split())
    if len(flat) <= PREVIEW_LENGTH:
        return flat
    return flat[: PREVIEW_LENGTH - 3] + "..."
