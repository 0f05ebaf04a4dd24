# src/todo_keeper/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Components receive plain values from it; nothing reads the env on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .storage.substrate import DEFAULT_QUOTA_CHARS
from .tasks.task_models import MAX_BACKUP_ITEMS

ENV_PREFIX = "TODO"

# Documentation of every variable Settings.from_env() reads.
ENV_VARS = {
    "TODO_APP_NAME": "App display name (default: todo).",
    "TODO_LOG_LEVEL": "Console logging level (default: INFO).",
    "TODO_CONSOLE_ENABLED": "Run the console REPL (true/false, default: true).",
    "TODO_DATA_DIR": "Local data directory (default: .local/todo).",
    "TODO_STORAGE_PATH": "Key-value store file (default: <data_dir>/storage.json).",
    "TODO_STORAGE_QUOTA_CHARS": "Storage capacity in characters (default: 5 MiB).",
    "TODO_KEY_PREFIX": "Prefix of every storage key the app owns (default: todo).",
    "TODO_MAX_BACKUP_ITEMS": "Backups kept before the oldest is evicted (default: 5).",
    "TODO_AUTO_BACKUP_ENABLED": "Run the periodic auto-backup (true/false, default: true).",
    "TODO_AUTO_BACKUP_INTERVAL_SECONDS": "Auto-backup interval (default: 3600).",
}


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Storage ----
    data_dir: Path
    storage_path: Path
    storage_quota_chars: int
    key_prefix: str

    # ---- Backups ----
    max_backup_items: int
    auto_backup_enabled: bool
    auto_backup_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/todo"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "todo") or "todo",
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            data_dir=data_dir,
            storage_path=_env_path(_k("STORAGE_PATH"), data_dir / "storage.json"),
            storage_quota_chars=max(1024, _env_int(_k("STORAGE_QUOTA_CHARS"), DEFAULT_QUOTA_CHARS)),
            key_prefix=_env(_k("KEY_PREFIX"), "todo").strip() or "todo",
            max_backup_items=max(1, _env_int(_k("MAX_BACKUP_ITEMS"), MAX_BACKUP_ITEMS)),
            auto_backup_enabled=_env_bool(_k("AUTO_BACKUP_ENABLED"), True),
            auto_backup_interval_seconds=max(1.0, _env_float(_k("AUTO_BACKUP_INTERVAL_SECONDS"), 3600.0)),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings; .env is read on first use, real env vars win."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
