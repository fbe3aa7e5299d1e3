"""QueueService: composes the queue core and exposes its command surface."""

from __future__ import annotations

from typing import Any, Callable

from sendqueue.infrastructure.config import QUEUE_STATE_KEY, SHUTDOWN_TIMEOUT, TICK_INTERVAL
from sendqueue.infrastructure.database import AppDatabase
from sendqueue.infrastructure.logger import logger
from sendqueue.infrastructure.poll_loop import PollLoop, start_poll_loop
from sendqueue.queue.admission import Admission
from sendqueue.queue.dispatcher import Dispatcher
from sendqueue.queue.errors import CapacityExceeded
from sendqueue.queue.notifications import Notifications
from sendqueue.queue.settings import SettingsManager
from sendqueue.queue.store import QueueStore
from sendqueue.queue.types import MessagePayload, Notifier, Presenter, QueueItem, QueueSettings, SubmitOutcome, Transport


class QueueService:
    """Owns one queue instance and manages its lifecycle.

    Presenters read ``snapshot()``, ``settings`` and ``is_paused`` and mutate
    only through ``try_enqueue``, ``toggle_pause``, ``clear_queue`` and
    ``update_setting``. Hosts route their send path through ``submit``.
    """

    def __init__(
        self,
        database: AppDatabase,
        transport: Transport,
        notifier: Notifier | None = None,
        presenter: Presenter | None = None,
        *,
        queue_key: str = QUEUE_STATE_KEY,
        tick_interval: float = TICK_INTERVAL,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
    ) -> None:
        self._db = database
        self._presenter = presenter
        self._tick_interval = tick_interval
        self._shutdown_timeout = shutdown_timeout

        self._settings = SettingsManager(database.state_repo, on_change=self._refresh)
        self._store = QueueStore(database.state_repo, key=queue_key, on_change=self._refresh)
        self._notifications = Notifications(notifier, lambda: self._settings.current)
        self._admission = Admission(self._store, self._settings, self._notifications)
        self._dispatcher = Dispatcher(self._store, self._settings, transport, self._notifications)
        self._loop: PollLoop | None = None

        # State is read once here so nothing writes over it before it is loaded.
        self._settings.load()
        self._store.load()

    @property
    def settings(self) -> QueueSettings:
        return self._settings.current

    @property
    def is_paused(self) -> bool:
        return self._dispatcher.is_paused

    def snapshot(self) -> list[QueueItem]:
        return self._store.snapshot()

    async def start(self) -> None:
        """Start the dispatcher timer."""
        logger.info("Starting message queue...")
        settings = self._settings.current
        self._loop = start_poll_loop("Dispatcher", self._tick_interval, self._dispatcher.tick)
        logger.info(
            "Message queue started",
            queue_size=len(self._store),
            enabled=settings.enabled,
            delay_ms=settings.delay_ms,
        )
        self._notifications.started()

    async def shutdown(self) -> None:
        """Let any in-flight send settle, stop the timer and persist final state."""
        logger.info("Shutting down message queue...")
        if self._loop is not None:
            await self._loop.stop(timeout=self._shutdown_timeout)
            self._loop = None
        self._store.save()
        self._settings.save()
        logger.info("Message queue shut down complete", queue_size=len(self._store))

    def submit(self, destination: str, payload: MessagePayload, bypass: bool = False) -> SubmitOutcome:
        """Route one outgoing message from the host's send path.

        "bypassed" and "rejected" both leave delivery to the caller.
        """
        if not self._admission.should_intercept(bypass):
            return "bypassed"
        try:
            self.try_enqueue(destination, payload)
        except CapacityExceeded as err:
            logger.warning(str(err), destination=destination, **err.details)
            self._notifications.queue_full(err.max_queue_size)
            return "rejected"
        return "queued"

    def try_enqueue(self, destination: str, payload: MessagePayload) -> QueueItem:
        return self._admission.try_enqueue(destination, payload)

    def toggle_pause(self) -> bool:
        paused = self._dispatcher.toggle_pause()
        self._notifications.pause_toggled(paused)
        self._refresh()
        return paused

    def clear_queue(self, confirm: Callable[[str], bool]) -> int:
        """Empty the queue once ``confirm`` approves. Returns the number of items removed."""
        size = len(self._store)
        if size == 0:
            return 0
        if not confirm(f"Clear all {size} messages from queue?"):
            logger.debug("Queue clear declined", queue_size=size)
            return 0
        removed = self._store.clear()
        logger.info("Queue cleared", removed=removed)
        self._notifications.cleared(removed)
        return removed

    def update_setting(self, key: str, value: Any) -> QueueSettings:
        return self._settings.update_setting(key, value)

    def _refresh(self) -> None:
        if self._presenter is None:
            return
        try:
            self._presenter.refresh()
        except Exception:
            logger.exception("Presenter refresh failed")
