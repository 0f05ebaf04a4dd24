# src/todo_keeper/tasks/task_api.py

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import replace
from datetime import datetime

from ..core.state import AppState
from .task_models import OpResult, Task, parse_instant, to_iso, utc_now

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
_UNSET = object()


def new_task_id(now: datetime | None = None) -> str:
    """"<epoch-ms>-<6 random base36 chars>", unique enough for one user's list."""
    now = now or utc_now()
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{int(now.timestamp() * 1000)}-{suffix}"


def _norm(text: str) -> str:
    return (text or "").strip().lower()


def is_duplicate(tasks: list[Task], text: str, *, exclude_id: str | None = None) -> bool:
    """Case-insensitive match on trimmed text; exclude_id skips the task being edited."""
    wanted = _norm(text)
    if not wanted:
        return False
    return any(_norm(t.text) == wanted for t in tasks if t.id != exclude_id)


def _check_due_date(due_date: str | None) -> str | None:
    if due_date is None:
        return None
    if parse_instant(due_date) is None:
        raise ValueError(f"invalid due date: {due_date!r}")
    return due_date.strip()


def _commit(state: AppState, tasks: list[Task]) -> OpResult:
    """Persist a new collection; state.tasks only changes if the save succeeded."""
    result = state.store.save(tasks)
    if result:
        state.tasks = list(result.value)
    return result


def add_task(state: AppState, text: str, due_date: str | None = None) -> OpResult:
    """
    Add a task after the caller-side checks the store does not do:
    non-empty text and no case-insensitive duplicate.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return OpResult.failure("Task text is empty.")
    if is_duplicate(state.tasks, trimmed):
        return OpResult.failure("A task with that name already exists.")
    try:
        due = _check_due_date(due_date)
    except ValueError as e:
        return OpResult.failure(str(e))

    now = utc_now()
    task = Task(id=new_task_id(now), text=trimmed, created_at=to_iso(now), due_date=due)
    result = _commit(state, [*state.tasks, task])
    if not result:
        return result
    logger.debug("Task added id=%s due=%s", task.id, due)
    return OpResult.success(task)


def edit_task(
    state: AppState,
    task_id: str,
    *,
    text: str | None = None,
    due_date: str | None | object = _UNSET,
) -> OpResult:
    """
    Change a task's text and/or due date. Pass due_date=None to clear it.
    """
    current = next((t for t in state.tasks if t.id == task_id), None)
    if current is None:
        return OpResult.failure(f"No task with id {task_id}.")

    updated = current
    if text is not None:
        trimmed = text.strip()
        if not trimmed:
            return OpResult.failure("Task text is empty.")
        if is_duplicate(state.tasks, trimmed, exclude_id=task_id):
            return OpResult.failure("A task with that name already exists.")
        updated = replace(updated, text=trimmed)

    if due_date is not _UNSET:
        try:
            updated = replace(updated, due_date=_check_due_date(due_date))  # type: ignore[arg-type]
        except ValueError as e:
            return OpResult.failure(str(e))

    result = _commit(state, [updated if t.id == task_id else t for t in state.tasks])
    if not result:
        return result
    return OpResult.success(updated)


def delete_task(state: AppState, task_id: str) -> OpResult:
    remaining = [t for t in state.tasks if t.id != task_id]
    if len(remaining) == len(state.tasks):
        return OpResult.failure(f"No task with id {task_id}.")
    result = _commit(state, remaining)
    if not result:
        return result
    logger.debug("Task deleted id=%s", task_id)
    return OpResult.success(task_id)


def restore_backup(state: AppState, key: str) -> OpResult:
    """Restore a backup and reload the in-memory collection from the store."""
    result = state.store.restore_from_backup(key)
    if result:
        state.tasks = state.store.load()
    return result


def clear_all(state: AppState) -> OpResult:
    """Wipe everything. The caller must have collected two confirmations first."""
    result = state.store.clear_all_data()
    if result:
        state.tasks = []
    return result


def count_label(n: int) -> str:
    return "1 task" if n == 1 else f"{n} tasks"
