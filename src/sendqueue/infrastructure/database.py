"""SQLite database schema and AppDatabase composition root."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from sendqueue.infrastructure.config import DB_FILENAME, STORE_DIR
from sendqueue.infrastructure.logger import logger
from sendqueue.infrastructure.state_repo import StateRepository


def create_schema(db: sqlite3.Connection) -> None:
    """Create all tables. Safe to call multiple times (IF NOT EXISTS)."""
    db.executescript("""
        CREATE TABLE IF NOT EXISTS queue_state (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
    """)


class AppDatabase:
    """Opens the state database and exposes the state repository."""

    def __init__(self) -> None:
        self._db: sqlite3.Connection | None = None
        self.state_repo: StateRepository | None = None  # type: ignore[assignment]

    @property
    def db(self) -> sqlite3.Connection:
        assert self._db is not None, "Database not initialized. Call init() first."
        return self._db

    def init(self, store_dir: Path = STORE_DIR) -> None:
        """Open (or create) the database file at the standard location."""
        db_path = store_dir / DB_FILENAME
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._init_repos()
        logger.debug("State database opened", path=str(db_path))

    def _init_test(self) -> None:
        """For tests only. Creates a fresh in-memory database."""
        self._db = sqlite3.connect(":memory:")
        self._db.row_factory = sqlite3.Row
        self._init_repos()

    def _init_repos(self) -> None:
        assert self._db is not None
        create_schema(self._db)
        self.state_repo = StateRepository(self._db)

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None
