# src/todo_keeper/tasks/task_store.py

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..core.ports import Clock, KeyValueStore
from ..storage.substrate import StorageError, StorageFullError
from .backups import BackupManager
from .task_models import (
    CURRENT_VERSION,
    MAX_BACKUP_ITEMS,
    BackupReason,
    BackupSummary,
    MemoryStats,
    OpResult,
    StorageKeys,
    StorageKind,
    Task,
    clean_tasks,
    parse_instant,
    to_iso,
    utc_now,
)

logger = logging.getLogger(__name__)


class TaskStore:
    """
    Task collection persisted in a key-value substrate, with backups.

    Every public method resolves faults to a safe value (empty list, failed
    OpResult) and logs the cause; nothing raises to the UI.

    On a volatile substrate (durable=False) the store keeps working for the
    process lifetime, but backups are disabled and no version is stamped.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        version: str = CURRENT_VERSION,
        max_backup_items: int = MAX_BACKUP_ITEMS,
        key_prefix: str = "todo",
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._version = version
        self._clock = clock
        self.keys = StorageKeys.with_prefix(key_prefix)
        self.backups = BackupManager(
            store,
            self.keys,
            version=version,
            max_items=max_backup_items,
            clock=clock,
        )

        if self.is_durable:
            self.check_version_and_migrate()
        else:
            logger.warning("TaskStore running on volatile storage; data will not survive a restart.")

        logger.info("TaskStore ready kind=%s version=%s", self.kind.value, self._version)

    @property
    def is_durable(self) -> bool:
        return bool(getattr(self._store, "durable", True))

    @property
    def kind(self) -> StorageKind:
        return StorageKind.PRIMARY if self.is_durable else StorageKind.FALLBACK

    @property
    def version(self) -> str:
        return self._version

    # ---- tasks ----

    def load(self) -> list[Task]:
        """Read the persisted collection. Never raises; corrupt data yields []."""
        raw: str | None = None
        try:
            raw = self._store.get(self.keys.tasks)
            if not raw:
                return []

            try:
                data = json.loads(raw)
            except ValueError:
                logger.warning("Stored tasks are not valid JSON; starting empty.")
                self._recovery_backup(raw)
                return []

            if not isinstance(data, list):
                logger.warning("Stored tasks are not a list (%s); starting empty.", type(data).__name__)
                return []

            tasks = clean_tasks(data, now=self._clock())
            if len(tasks) != len(data):
                logger.debug("Dropped %d invalid task record(s) on load", len(data) - len(tasks))
            return tasks

        except Exception:
            logger.exception("Failed to load tasks")
            self._recovery_backup(raw)
            return []

    def _recovery_backup(self, raw: str | None) -> None:
        """
        Best-effort error-recovery backup; the unreadable payload is kept under "raw".

        A payload that already has a recovery backup is not backed up again,
        so restarting over the same corrupt data does not rotate good backups away.
        """
        if not self.is_durable:
            return
        try:
            if raw is not None and self.backups.has_recovery_for(raw):
                logger.debug("Corrupt payload already has a recovery backup")
                return
            self.backups.write([], BackupReason.ERROR_RECOVERY, extra={"raw": raw} if raw else None)
        except Exception:
            logger.exception("Error-recovery backup failed")

    def save(self, tasks: Sequence[Task | Mapping[str, Any]]) -> OpResult:
        """
        Validate, sanitize and persist the collection.

        Before the real write the payload is probed under a scratch key; if the
        probe hits the quota, old backups are evicted first. Returns a failed
        OpResult instead of raising.
        """
        if isinstance(tasks, (str, bytes, bytearray, memoryview, Mapping)) or not isinstance(tasks, Sequence):
            logger.error("save() expects a sequence of tasks, got %s", type(tasks).__name__)
            return OpResult.failure("tasks must be a sequence")
        if tasks and not any(isinstance(t, (Task, Mapping)) for t in tasks):
            # e.g. array.array of ints: would silently persist [].
            logger.error("save() got a %s with no task records", type(tasks).__name__)
            return OpResult.failure("tasks must be a sequence of task records")

        try:
            valid = clean_tasks(tasks, now=self._clock())
            payload = json.dumps([t.to_record() for t in valid], ensure_ascii=False)

            if self.is_durable and not self._has_room_for(payload):
                logger.warning("Storage space is low, evicting old backups before saving.")
                self.backups.clean_old()

            self._store.set(self.keys.tasks, payload)
            self._store.set(self.keys.last_saved, to_iso(self._clock()))
            logger.debug("Saved %d task(s)", len(valid))
            return OpResult.success(valid)

        except StorageFullError as e:
            logger.error("Saving tasks failed, storage is full: %s", e)
            return OpResult.failure(f"storage full: {e}")
        except Exception as e:
            logger.exception("Saving tasks failed")
            return OpResult.failure(f"save failed: {e}")

    def _has_room_for(self, payload: str) -> bool:
        probe = self.keys.space_probe
        try:
            self._store.set(probe, payload)
        except StorageFullError:
            return False
        self._store.remove(probe)
        return True

    # ---- backups ----

    def create_backup(self, reason: BackupReason | str = BackupReason.MANUAL) -> OpResult:
        """Snapshot the persisted (not in-memory) tasks. The result value is the backup key."""
        if not self.is_durable:
            return OpResult.failure("backups are unavailable on volatile storage")
        try:
            key = self.backups.write(self.load(), reason)
            return OpResult.success(key)
        except Exception as e:
            logger.exception("Creating backup failed reason=%s", reason)
            return OpResult.failure(f"backup failed: {e}")

    def get_available_backups(self) -> list[BackupSummary]:
        if not self.is_durable:
            return []
        try:
            return self.backups.summaries()
        except Exception:
            logger.exception("Listing backups failed")
            return []

    def clean_old_backups(self) -> int:
        if not self.is_durable:
            return 0
        try:
            return self.backups.clean_old()
        except Exception:
            logger.exception("Cleaning old backups failed")
            return 0

    def restore_from_backup(self, key: str) -> OpResult:
        """
        Replace the live collection with a backup's tasks.

        A pre-restore backup of the current state is taken first, then the
        backup's tasks go through save() and are re-validated. If the
        pre-restore backup cannot be written the live tasks are left untouched.
        """
        if not self.is_durable:
            return OpResult.failure("backups are unavailable on volatile storage")
        try:
            backup = self.backups.read(key)
        except Exception as e:
            logger.exception("Reading backup failed key=%s", key)
            return OpResult.failure(f"cannot read backup: {e}")
        if backup is None:
            return OpResult.failure(f"backup not found: {key}")

        pre = self.create_backup(BackupReason.PRE_RESTORE)
        if not pre:
            logger.error("Restore of %s aborted, no pre-restore backup: %s", key, pre.error)
            return OpResult.failure(f"pre-restore backup failed: {pre.error}")
        result = self.save(backup.tasks)
        if result:
            logger.info("Restored %d task(s) from %s", len(result.value), key)
        return result

    def auto_backup_due(self) -> bool:
        """True if tasks were saved after the latest backup, or saved with no backup yet."""
        if not self.is_durable:
            return False
        last_saved = parse_instant(self._store.get(self.keys.last_saved))
        if last_saved is None:
            return False
        latest = self.backups.latest_timestamp()
        return latest is None or last_saved > latest

    def maybe_auto_backup(self) -> OpResult | None:
        """Take an auto backup if one is due. None means nothing needed doing."""
        try:
            due = self.auto_backup_due()
        except Exception as e:
            logger.exception("Auto-backup check failed")
            return OpResult.failure(f"auto-backup check failed: {e}")
        if not due:
            return None
        return self.create_backup(BackupReason.AUTO)

    def clear_all_data(self) -> OpResult:
        """
        Erase every key this store owns, including all backups.

        A final clear-all backup is written first and deleted along with the rest.
        Irreversible: callers must confirm twice before calling this.
        """
        try:
            if self.is_durable:
                final = self.create_backup(BackupReason.CLEAR_ALL)
                if not final:
                    logger.warning("Final clear-all backup failed: %s", final.error)

            for key in self.keys.owned():
                self._store.remove(key)
            removed = self.backups.remove_all()
            logger.warning("All task data cleared (%d backup(s) removed)", removed)
            return OpResult.success(removed)
        except Exception as e:
            logger.exception("Clearing data failed")
            return OpResult.failure(f"clear failed: {e}")

    # ---- version / stats ----

    def check_version_and_migrate(self) -> None:
        """
        Stamp the schema version on a fresh store; on a version change take a
        version-migration backup before stamping the new one.
        """
        try:
            saved = self._store.get(self.keys.app_version)
            if not saved:
                self._store.set(self.keys.app_version, self._version)
                return
            if saved != self._version:
                logger.info("Migrating stored data from version %s to %s", saved, self._version)
                self.create_backup(BackupReason.VERSION_MIGRATION)
                self._store.set(self.keys.app_version, self._version)
        except StorageError:
            logger.exception("Version check/migration failed")

    def get_memory_stats(self) -> MemoryStats:
        try:
            if not self.is_durable:
                return MemoryStats(type=StorageKind.FALLBACK, tasks=len(self.load()), backups=0, space="N/A")

            total = 0
            for key in self._store.keys():
                total += len(key) + len(self._store.get(key) or "")

            return MemoryStats(
                type=StorageKind.PRIMARY,
                tasks=len(self.load()),
                backups=len(self.get_available_backups()),
                space=f"{int(total / 1024 + 0.5)}KB",
                last_saved=self._store.get(self.keys.last_saved),
                version=self._store.get(self.keys.app_version),
            )
        except Exception as e:
            logger.exception("Collecting storage stats failed")
            return MemoryStats(type=StorageKind.ERROR, space="", error=str(e))
