# src/todo_keeper/tasks/task_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

CURRENT_VERSION = "1.0.0"
MAX_BACKUP_ITEMS = 5


class BackupReason(StrEnum):
    MANUAL = "manual"
    AUTO = "auto"
    ERROR_RECOVERY = "error-recovery"
    VERSION_MIGRATION = "version-migration"
    PRE_RESTORE = "pre-restore"
    CLEAR_ALL = "clear-all"


class StorageKind(StrEnum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    ERROR = "error"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """ISO-8601 with milliseconds and a trailing Z, e.g. 2024-01-01T00:00:00.000Z."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 date or datetime string into an aware UTC datetime.

    Date-only and naive values are taken as UTC. Anything else returns None.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(slots=True)
class Task:
    id: str
    text: str
    created_at: str
    due_date: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "createdAt": self.created_at,
            "dueDate": self.due_date,
        }


def _as_record(item: Any) -> Mapping[str, Any] | None:
    if isinstance(item, Task):
        return item.to_record()
    if isinstance(item, Mapping):
        return item
    return None


def validate_task(item: Any) -> bool:
    """A task needs a non-empty string id and text and a parseable createdAt."""
    rec = _as_record(item)
    if rec is None:
        return False
    task_id = rec.get("id")
    if not isinstance(task_id, str) or not task_id.strip():
        return False
    text = rec.get("text")
    if not isinstance(text, str) or not text.strip():
        return False
    return parse_instant(rec.get("createdAt")) is not None


def sanitize_task(item: Any, *, now: datetime | None = None) -> Task:
    """Normalize a validated record: trim id/text, default createdAt, drop a bad dueDate."""
    rec = _as_record(item) or {}
    created_at = rec.get("createdAt")
    if parse_instant(created_at) is None:
        created_at = to_iso(now or utc_now())
    due_date = rec.get("dueDate")
    if parse_instant(due_date) is None:
        due_date = None
    return Task(
        id=str(rec.get("id", "")).strip(),
        text=str(rec.get("text", "")).strip(),
        created_at=created_at,
        due_date=due_date,
    )


def clean_tasks(items: Any, *, now: datetime | None = None) -> list[Task]:
    return [sanitize_task(t, now=now) for t in items if validate_task(t)]


@dataclass(frozen=True, slots=True)
class BackupSummary:
    key: str
    timestamp: str | None
    reason: str | None
    task_count: int


@dataclass(frozen=True, slots=True)
class Backup:
    key: str
    tasks: list[Any]
    timestamp: str | None
    reason: str | None
    version: str | None


@dataclass(frozen=True, slots=True)
class MemoryStats:
    type: StorageKind
    tasks: int = 0
    backups: int = 0
    space: str = "N/A"
    last_saved: str | None = None
    version: str | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True, slots=True)
class OpResult:
    """
    Outcome of a fallible store operation.

    Truthy exactly when ok, so callers can treat it as a plain boolean
    or inspect the diagnostic in `error`.
    """

    ok: bool
    error: str | None = None
    value: Any = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Any = None) -> OpResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> OpResult:
        return cls(ok=False, error=error)


@dataclass(frozen=True, slots=True)
class StorageKeys:
    """Logical key names owned by the task store, all under one prefix."""

    tasks: str
    app_version: str
    last_backup: str
    last_saved: str
    user_settings: str
    backup_prefix: str
    space_probe: str = field(default="__space_test__")

    @classmethod
    def with_prefix(cls, prefix: str = "todo") -> StorageKeys:
        p = (prefix or "todo").strip()
        return cls(
            tasks=f"{p}-tasks",
            app_version=f"{p}-app-version",
            last_backup=f"{p}-last-backup",
            last_saved=f"{p}-last-saved",
            user_settings=f"{p}-user-settings",
            backup_prefix=f"{p}-backup-",
        )

    def owned(self) -> tuple[str, ...]:
        return (self.tasks, self.app_version, self.last_backup, self.last_saved, self.user_settings)

    def is_backup(self, key: str | None) -> bool:
        return key is not None and key.startswith(self.backup_prefix)
