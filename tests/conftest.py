# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_keeper.core.state import AppState
from todo_keeper.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeKeyValueStore, FakeUI


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        storage_path=tmp_path / "storage.json",
        storage_quota_chars=64 * 1024,
        key_prefix="todo",
        max_backup_items=5,
        auto_backup_enabled=False,
        auto_backup_interval_seconds=3600.0,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def kv() -> FakeKeyValueStore:
    return FakeKeyValueStore()


@pytest.fixture()
def store(kv: FakeKeyValueStore, clock: FakeClock) -> TaskStore:
    return TaskStore(kv, clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    """
    AppState wired with an in-memory durable substrate.

    NOTE: the TaskStore itself is real; its correctness is part of what we test.
    """
    return AppState(settings=settings, store=store, tasks=store.load())


@pytest.fixture()
def ui() -> FakeUI:
    return FakeUI()
