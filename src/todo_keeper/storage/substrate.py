# src/todo_keeper/storage/substrate.py

"""
Key-value storage substrates.

Two implementations of the same KeyValueStore port:
- FileKeyValueStore: durable, one JSON object on disk, capacity limited
- VolatileKeyValueStore: in-memory dict, used when the durable one is unavailable

open_substrate() picks one of them once at startup.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..core.ports import KeyValueStore

logger = logging.getLogger(__name__)

# Roughly what browsers grant per origin (5 MiB of UTF-16 characters).
DEFAULT_QUOTA_CHARS = 5 * 1024 * 1024

_PROBE_KEY = "__storage_test__"


class StorageError(Exception):
    """Base class for substrate failures."""


class StorageFullError(StorageError):
    """A write would exceed the substrate's capacity."""


class StorageUnavailableError(StorageError):
    """The substrate cannot be opened or written at all."""


def _entry_size(key: str, value: str) -> int:
    return len(key) + len(value)


class VolatileKeyValueStore:
    """Process-lifetime dict substitute. Same contract, nothing survives a restart."""

    durable = False

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)


class FileKeyValueStore:
    """
    Durable substrate backed by a single JSON file.

    - every key/value pair counts len(key) + len(value) toward quota_chars
    - writes go to a temp file and are moved into place with os.replace
    - a failed flush rolls the in-memory change back
    """

    durable = True

    def __init__(self, path: str | Path, *, quota_chars: int = DEFAULT_QUOTA_CHARS) -> None:
        self._path = Path(path)
        self._quota = max(0, int(quota_chars))
        self._data: dict[str, str] = self._read_file()
        logger.debug("FileKeyValueStore opened path=%s keys=%d", self._path, len(self._data))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def quota_chars(self) -> int:
        return self._quota

    def _read_file(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            raise StorageUnavailableError(f"cannot read {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageUnavailableError(f"{self._path} does not hold a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(self._data, ensure_ascii=False), "utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            raise StorageUnavailableError(f"cannot write {self._path}: {e}") from e
        with contextlib.suppress(OSError):
            # Task text may be personal, keep the file private.
            os.chmod(self._path, 0o600)

    def used_chars(self) -> int:
        return sum(_entry_size(k, v) for k, v in self._data.items())

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        value = str(value)
        old = self._data.get(key)
        used = self.used_chars()
        if old is not None:
            used -= _entry_size(key, old)
        if used + _entry_size(key, value) > self._quota:
            raise StorageFullError(
                f"quota exceeded writing {key!r} ({used + _entry_size(key, value)} > {self._quota} chars)"
            )

        self._data[key] = value
        try:
            self._flush()
        except StorageError:
            if old is None:
                self._data.pop(key, None)
            else:
                self._data[key] = old
            raise

    def remove(self, key: str) -> None:
        if key not in self._data:
            return
        old = self._data.pop(key)
        try:
            self._flush()
        except StorageError:
            self._data[key] = old
            raise

    def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)


def probe_store(store: KeyValueStore) -> bool:
    """Write and remove a throwaway key; False if the substrate refuses."""
    try:
        store.set(_PROBE_KEY, _PROBE_KEY)
        store.remove(_PROBE_KEY)
        return True
    except (StorageError, OSError):
        return False


def open_substrate(path: str | Path, *, quota_chars: int = DEFAULT_QUOTA_CHARS) -> KeyValueStore:
    """
    Open the durable file store, or fall back to a volatile one for the process lifetime.
    """
    try:
        store = FileKeyValueStore(path, quota_chars=quota_chars)
    except StorageError:
        logger.warning("Durable storage unavailable at %s, using volatile memory.", path, exc_info=True)
        return VolatileKeyValueStore()

    if not probe_store(store):
        logger.warning("Durable storage at %s rejected a probe write, using volatile memory.", path)
        return VolatileKeyValueStore()

    logger.info("Durable storage ready path=%s keys=%d", path, len(store))
    return store
