"""Configuration constants, .env parsing, and default queue settings."""

from __future__ import annotations

import os
from pathlib import Path


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ; callers decide what to do with values.
    """
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


def env_int(name: str, default: int, env_config: dict[str, str] | None = None) -> int:
    """Read an integer from os.environ, then the .env values, falling back to default."""
    raw = os.environ.get(name) or (env_config or {}).get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


_ENV_KEYS = [
    "SENDQUEUE_STORE_DIR",
    "SENDQUEUE_DELAY_MS",
    "SENDQUEUE_MAX_QUEUE_SIZE",
    "SENDQUEUE_SHUTDOWN_TIMEOUT",
]

# Read config values from .env (falls back to os.environ).
_env_config = read_env_file(_ENV_KEYS)

TICK_INTERVAL: float = 1.0  # seconds
MAX_ATTEMPTS: int = 3
SHUTDOWN_TIMEOUT: float = float(env_int("SENDQUEUE_SHUTDOWN_TIMEOUT", 30, _env_config))

PROJECT_ROOT: Path = Path.cwd()
STORE_DIR: Path = Path(
    os.environ.get("SENDQUEUE_STORE_DIR") or _env_config.get("SENDQUEUE_STORE_DIR", str(PROJECT_ROOT / "store"))
).resolve()
DB_FILENAME: str = "sendqueue.db"

QUEUE_STATE_KEY: str = "message_queue"
SETTINGS_STATE_KEY: str = "settings"

DEFAULT_ENABLED: bool = True
DEFAULT_DELAY_MS: int = max(0, env_int("SENDQUEUE_DELAY_MS", 2000, _env_config))
DEFAULT_MAX_QUEUE_SIZE: int = max(1, env_int("SENDQUEUE_MAX_QUEUE_SIZE", 50, _env_config))
DEFAULT_AUTO_SEND: bool = True
DEFAULT_SHOW_NOTIFICATIONS: bool = True
DEFAULT_QUEUE_ON_ENTER: bool = False
