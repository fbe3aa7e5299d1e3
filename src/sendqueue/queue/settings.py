"""Queue settings: defaults, persistence and validated mutation."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Callable

from pydantic import ValidationError

from sendqueue.infrastructure.config import SETTINGS_STATE_KEY
from sendqueue.infrastructure.logger import logger
from sendqueue.infrastructure.state_repo import StateRepository
from sendqueue.queue.errors import InvalidSettingError, PersistenceCorrupt, UnknownSettingError
from sendqueue.queue.types import QueueSettings


def decode_settings(raw: str) -> QueueSettings:
    """Merge a stored settings object over the defaults.

    Missing keys take their default and unrecognised keys are ignored.
    """
    try:
        stored = json.loads(raw)
    except ValueError as err:
        raise PersistenceCorrupt("Stored settings are not valid JSON") from err
    if not isinstance(stored, dict):
        raise PersistenceCorrupt("Stored settings are not an object", {"type": type(stored).__name__})
    known = {key: value for key, value in stored.items() if key in QueueSettings.model_fields}
    try:
        return QueueSettings.model_validate({**QueueSettings().model_dump(), **known})
    except ValidationError as err:
        raise PersistenceCorrupt("Stored settings failed validation", {"errors": err.error_count()}) from err


class SettingsManager:
    """Holds the live QueueSettings record; mutated only through update_setting."""

    def __init__(
        self,
        repo: StateRepository,
        key: str = SETTINGS_STATE_KEY,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._repo = repo
        self._key = key
        self._settings = QueueSettings()
        self._on_change = on_change

    @property
    def current(self) -> QueueSettings:
        return self._settings

    def load(self) -> QueueSettings:
        raw = self._repo.get_state(self._key)
        if raw is None:
            self._settings = QueueSettings()
        else:
            try:
                self._settings = decode_settings(raw)
            except PersistenceCorrupt as err:
                logger.warning("Stored settings are corrupt, using defaults", key=self._key, error=str(err))
                self._settings = QueueSettings()
        return self._settings

    def save(self) -> None:
        try:
            self._repo.set_state(self._key, self._settings.model_dump_json())
        except sqlite3.Error:
            logger.exception("Failed to save settings", key=self._key)

    def update_setting(self, key: str, value: Any) -> QueueSettings:
        """Validate and apply one setting, then persist it."""
        if key not in QueueSettings.model_fields:
            raise UnknownSettingError(key)
        try:
            updated = QueueSettings.model_validate({**self._settings.model_dump(), key: value})
        except ValidationError as err:
            reason = err.errors()[0]["msg"] if err.errors() else str(err)
            raise InvalidSettingError(key, value, reason) from err

        previous = getattr(self._settings, key)
        self._settings = updated
        self.save()
        logger.info("Setting updated", key=key, old=previous, new=getattr(updated, key))
        if self._on_change is not None:
            try:
                self._on_change()
            except Exception:
                logger.exception("Settings change listener failed")
        return updated
