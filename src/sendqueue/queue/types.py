"""Queue domain types and collaborator protocols."""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from sendqueue.infrastructure.config import (
    DEFAULT_AUTO_SEND,
    DEFAULT_DELAY_MS,
    DEFAULT_ENABLED,
    DEFAULT_MAX_QUEUE_SIZE,
    DEFAULT_QUEUE_ON_ENTER,
    DEFAULT_SHOW_NOTIFICATIONS,
)

ItemStatus = Literal["pending", "sending", "failed"]
Severity = Literal["info", "success", "failure"]
SubmitOutcome = Literal["queued", "bypassed", "rejected"]


class MessagePayload(BaseModel):
    """Content handed to the transport once the item is released."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(min_length=1)
    tts: bool = False


class QueueItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    destination: str
    payload: MessagePayload
    status: ItemStatus = "pending"
    attempts: int = Field(default=0, ge=0)
    enqueued_at: str
    last_error: str | None = None


class QueueSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = DEFAULT_ENABLED
    delay_ms: int = Field(default=DEFAULT_DELAY_MS, ge=0)
    max_queue_size: int = Field(default=DEFAULT_MAX_QUEUE_SIZE, ge=1)
    auto_send: bool = DEFAULT_AUTO_SEND
    show_notifications: bool = DEFAULT_SHOW_NOTIFICATIONS
    queue_on_enter: bool = DEFAULT_QUEUE_ON_ENTER


@runtime_checkable
class Transport(Protocol):
    """The host's real send operation.

    Raising, or returning ``False``, counts as a failed attempt.
    """

    async def send(self, destination: str, payload: MessagePayload) -> bool | None: ...


@runtime_checkable
class Notifier(Protocol):
    def notify(self, message: str, severity: Severity) -> None: ...


@runtime_checkable
class Presenter(Protocol):
    def refresh(self) -> None: ...
