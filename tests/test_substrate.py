# tests/test_substrate.py

from __future__ import annotations

from pathlib import Path

import pytest

from todo_keeper.storage.substrate import (
    FileKeyValueStore,
    StorageFullError,
    StorageUnavailableError,
    VolatileKeyValueStore,
    open_substrate,
    probe_store,
)


def test_file_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    store = FileKeyValueStore(path)
    store.set("todo-tasks", "[]")
    store.set("other", "value")
    store.remove("other")

    reopened = FileKeyValueStore(path)

    assert reopened.get("todo-tasks") == "[]"
    assert reopened.get("other") is None
    assert reopened.keys() == ["todo-tasks"]
    assert len(reopened) == 1


def test_file_store_enforces_quota(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path / "storage.json", quota_chars=20)
    store.set("k", "x" * 10)

    with pytest.raises(StorageFullError):
        store.set("k2", "y" * 10)

    # Replacing a value only counts the difference.
    store.set("k", "z" * 19)
    assert store.used_chars() == 20
    assert store.get("k2") is None
    assert FileKeyValueStore(tmp_path / "storage.json").get("k") == "z" * 19


def test_corrupt_file_is_unavailable(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_text("{broken", "utf-8")

    with pytest.raises(StorageUnavailableError):
        FileKeyValueStore(path)


def test_open_substrate_prefers_the_file_store(tmp_path: Path) -> None:
    store = open_substrate(tmp_path / "data" / "storage.json")

    assert isinstance(store, FileKeyValueStore)
    assert store.durable
    assert store.keys() == []


def test_open_substrate_falls_back_to_volatile(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_text("[1, 2, 3]", "utf-8")

    store = open_substrate(path)

    assert isinstance(store, VolatileKeyValueStore)
    assert not store.durable
    # The unreadable file is left alone.
    assert path.read_text("utf-8") == "[1, 2, 3]"


def test_open_substrate_falls_back_when_probe_is_refused(tmp_path: Path) -> None:
    store = open_substrate(tmp_path / "storage.json", quota_chars=4)

    assert isinstance(store, VolatileKeyValueStore)


def test_volatile_store_contract() -> None:
    store = VolatileKeyValueStore()

    assert probe_store(store)
    store.set("a", "1")
    assert store.get("a") == "1"
    assert store.keys() == ["a"]
    store.remove("a")
    store.remove("missing")
    assert len(store) == 0
