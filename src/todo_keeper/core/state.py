# src/todo_keeper/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    store: TaskStore
    # In-memory collection the UI mutates; persisted through store.save().
    tasks: list[Task] = field(default_factory=list)

    # Serializes UI commands with the background auto-backup tick.
    lock: threading.Lock = field(default_factory=threading.Lock)
