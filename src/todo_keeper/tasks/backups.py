# src/todo_keeper/tasks/backups.py

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from ..core.ports import Clock, KeyValueStore
from .task_models import (
    CURRENT_VERSION,
    MAX_BACKUP_ITEMS,
    Backup,
    BackupReason,
    BackupSummary,
    StorageKeys,
    Task,
    parse_instant,
    to_iso,
    utc_now,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _key_seq(key: str, prefix: str) -> int:
    try:
        return int(key[len(prefix):])
    except ValueError:
        return 0


class BackupManager:
    """
    Timestamped snapshots of the task collection, one substrate key each.

    Keys are "<prefix>-backup-<epoch-ms>"; a collision bumps the millisecond
    until the key is free. At most max_items are kept, newest by timestamp.

    Substrate errors (StorageError) propagate; TaskStore turns them into OpResult.
    """

    def __init__(
        self,
        store: KeyValueStore,
        keys: StorageKeys,
        *,
        version: str = CURRENT_VERSION,
        max_items: int = MAX_BACKUP_ITEMS,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._keys = keys
        self._version = version
        self._max_items = max(1, int(max_items))
        self._clock = clock

    @property
    def max_items(self) -> int:
        return self._max_items

    def _new_key(self, now: datetime) -> str:
        seq = int(now.timestamp() * 1000)
        key = f"{self._keys.backup_prefix}{seq}"
        while self._store.get(key) is not None:
            seq += 1
            key = f"{self._keys.backup_prefix}{seq}"
        return key

    def backup_keys(self) -> list[str]:
        return [k for k in self._store.keys() if self._keys.is_backup(k)]

    def write(
        self,
        tasks: list[Task],
        reason: BackupReason | str,
        *,
        extra: dict[str, Any] | None = None,
    ) -> str:
        """Store a snapshot, move the latest-backup pointer, rotate. Returns the key."""
        now = self._clock()
        payload: dict[str, Any] = {
            "tasks": [t.to_record() for t in tasks],
            "timestamp": to_iso(now),
            "reason": str(reason),
            "version": self._version,
        }
        if extra:
            payload.update(extra)

        key = self._new_key(now)
        self._store.set(key, json.dumps(payload, ensure_ascii=False))
        self._store.set(self._keys.last_backup, key)
        logger.info("Backup created key=%s reason=%s tasks=%d", key, reason, len(tasks))

        self.clean_old()
        return key

    def read(self, key: str) -> Backup | None:
        """Return the backup under key, or None if it is missing or not a backup."""
        if not self._keys.is_backup(key):
            return None
        raw = self._store.get(key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Backup %s is corrupt", key)
            return None
        if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
            return None
        return Backup(
            key=key,
            tasks=data["tasks"],
            timestamp=data.get("timestamp"),
            reason=data.get("reason"),
            version=data.get("version"),
        )

    def summaries(self) -> list[BackupSummary]:
        """All readable backups, newest first. Unparsable entries are skipped."""
        found: list[tuple[datetime, int, BackupSummary]] = []
        for key in self.backup_keys():
            raw = self._store.get(key)
            if raw is None:
                continue
            try:
                data = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(data, dict):
                continue

            tasks = data.get("tasks")
            timestamp = data.get("timestamp")
            summary = BackupSummary(
                key=key,
                timestamp=timestamp if isinstance(timestamp, str) else None,
                reason=data.get("reason"),
                task_count=len(tasks) if isinstance(tasks, list) else 0,
            )
            sort_ts = parse_instant(summary.timestamp) or _EPOCH
            found.append((sort_ts, _key_seq(key, self._keys.backup_prefix), summary))

        found.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [summary for _, _, summary in found]

    def clean_old(self) -> int:
        """Delete every backup beyond the newest max_items. Returns how many were removed."""
        backups = self.summaries()
        stale = backups[self._max_items:]
        for summary in stale:
            self._store.remove(summary.key)
        if stale:
            logger.info("Evicted %d old backup(s)", len(stale))
        return len(stale)

    def has_recovery_for(self, raw: str) -> bool:
        """True if an error-recovery backup already holds this exact raw payload."""
        for key in self.backup_keys():
            try:
                data = json.loads(self._store.get(key) or "")
            except ValueError:
                continue
            if (
                isinstance(data, dict)
                and data.get("reason") == BackupReason.ERROR_RECOVERY
                and data.get("raw") == raw
            ):
                return True
        return False

    def latest_timestamp(self) -> datetime | None:
        """Timestamp of the backup the latest-backup pointer names, if it still exists."""
        key = self._store.get(self._keys.last_backup)
        if not key:
            return None
        backup = self.read(key)
        if backup is None:
            return None
        return parse_instant(backup.timestamp)

    def remove_all(self) -> int:
        keys = self.backup_keys()
        for key in keys:
            self._store.remove(key)
        return len(keys)
