# tests/test_task_api.py

from __future__ import annotations

import re

from todo_keeper.core.state import AppState
from todo_keeper.tasks.task_api import (
    add_task,
    clear_all,
    count_label,
    delete_task,
    edit_task,
    is_duplicate,
    new_task_id,
    restore_backup,
)
from todo_keeper.tasks.task_models import Task, parse_instant

from .fakes import FakeKeyValueStore


def test_add_task_persists_with_generated_id(state: AppState) -> None:
    result = add_task(state, "  Buy milk  ")

    assert result
    task = result.value
    assert task.text == "Buy milk"
    assert re.fullmatch(r"\d+-[0-9a-z]{6}", task.id)
    assert parse_instant(task.created_at) is not None
    assert task.due_date is None
    assert state.tasks == [task]
    assert state.store.load() == [task]


def test_new_task_ids_differ() -> None:
    assert len({new_task_id() for _ in range(50)}) == 50


def test_duplicate_text_is_rejected_case_insensitively(state: AppState) -> None:
    assert add_task(state, "Buy milk")

    result = add_task(state, "buy milk")

    assert not result
    assert "already exists" in (result.error or "")
    assert [t.text for t in state.store.load()] == ["Buy milk"]


def test_is_duplicate_trims_and_ignores_case() -> None:
    tasks = [Task(id="1", text="Buy milk", created_at="2024-01-01T00:00:00Z")]

    assert is_duplicate(tasks, "  BUY MILK ")
    assert not is_duplicate(tasks, "Buy milk today")
    assert not is_duplicate(tasks, "buy milk", exclude_id="1")
    assert not is_duplicate(tasks, "   ")


def test_empty_text_is_rejected(state: AppState) -> None:
    assert not add_task(state, "   ")
    assert state.tasks == []


def test_due_date_is_validated(state: AppState) -> None:
    ok = add_task(state, "Pay rent", due_date="2024-03-01")
    assert ok
    assert ok.value.due_date == "2024-03-01"

    bad = add_task(state, "Pay tax", due_date="next week")
    assert not bad
    assert "invalid due date" in (bad.error or "")
    assert len(state.tasks) == 1


def test_edit_text_checks_duplicates_except_itself(state: AppState) -> None:
    milk = add_task(state, "Buy milk").value
    add_task(state, "Call mom")

    assert edit_task(state, milk.id, text="BUY MILK")
    assert state.tasks[0].text == "BUY MILK"

    clash = edit_task(state, milk.id, text="call MOM")
    assert not clash
    assert state.tasks[0].text == "BUY MILK"

    assert not edit_task(state, "missing-id", text="x")


def test_edit_due_date_set_and_clear(state: AppState) -> None:
    task = add_task(state, "Dentist").value

    assert edit_task(state, task.id, due_date="2024-05-02").value.due_date == "2024-05-02"
    assert edit_task(state, task.id, due_date=None).value.due_date is None
    assert not edit_task(state, task.id, due_date="whenever")
    assert state.store.load()[0].due_date is None


def test_delete_task(state: AppState) -> None:
    a = add_task(state, "a").value
    b = add_task(state, "b").value

    assert delete_task(state, a.id)
    assert state.tasks == [b]
    assert state.store.load() == [b]
    assert not delete_task(state, a.id)


def test_in_memory_list_unchanged_when_save_fails(state: AppState, kv: FakeKeyValueStore) -> None:
    assert add_task(state, "first")
    kv.quota_chars = kv.used_chars()

    result = add_task(state, "second")

    assert not result
    assert [t.text for t in state.tasks] == ["first"]


def test_restore_backup_reloads_state(state: AppState) -> None:
    add_task(state, "a")
    key = state.store.create_backup().value
    add_task(state, "b")

    assert restore_backup(state, key)
    assert [t.text for t in state.tasks] == ["a"]

    assert not restore_backup(state, "todo-backup-1")
    assert [t.text for t in state.tasks] == ["a"]


def test_clear_all_empties_state(state: AppState) -> None:
    add_task(state, "a")

    assert clear_all(state)
    assert state.tasks == []
    assert state.store.load() == []
    assert state.store.get_available_backups() == []


def test_count_label() -> None:
    assert count_label(0) == "0 tasks"
    assert count_label(1) == "1 task"
    assert count_label(3) == "3 tasks"
