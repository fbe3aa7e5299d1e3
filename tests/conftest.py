import asyncio

import pytest

from sendqueue.infrastructure.database import AppDatabase
from sendqueue.queue.types import MessagePayload, Severity


@pytest.fixture
def db() -> AppDatabase:
    """Create an in-memory database for testing."""
    app_db = AppDatabase()
    app_db._init_test()
    return app_db


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Severity]] = []

    def notify(self, message: str, severity: Severity) -> None:
        self.calls.append((message, severity))

    def messages(self, severity: Severity | None = None) -> list[str]:
        return [m for m, s in self.calls if severity is None or s == severity]


class ScriptedTransport:
    """Transport whose outcomes are scripted per call: True, False or an exception."""

    def __init__(self, outcomes: list[object] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[str, MessagePayload]] = []
        self.gate: asyncio.Event | None = None

    async def send(self, destination: str, payload: MessagePayload) -> bool | None:
        self.calls.append((destination, payload))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome  # type: ignore[return-value]


class RecordingPresenter:
    def __init__(self) -> None:
        self.refreshes = 0

    def refresh(self) -> None:
        self.refreshes += 1


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()
