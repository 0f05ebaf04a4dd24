# src/todo_keeper/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- opens the storage substrate (durable, or volatile fallback),
- wires the TaskStore into AppState and loads the task list.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..storage.substrate import open_substrate
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        # open_substrate() will notice and fall back to volatile storage.
        logger.warning("Cannot create data dir %s", settings.data_dir, exc_info=True)

    substrate = open_substrate(settings.storage_path, quota_chars=settings.storage_quota_chars)
    store = TaskStore(
        substrate,
        max_backup_items=settings.max_backup_items,
        key_prefix=settings.key_prefix,
    )

    state = AppState(settings=settings, store=store)
    state.tasks = store.load()
    logger.info("Loaded %d task(s) from %s storage", len(state.tasks), store.kind.value)
    return state
