# src/todo_keeper/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task store depends on Protocols instead of concrete implementations.
This keeps the storage substrate and the UI swappable and makes testing easier.
"""

from datetime import datetime
from typing import Callable, Protocol

Clock = Callable[[], datetime]
# Returns the current instant as an aware UTC datetime.


class KeyValueStore(Protocol):
    """
    Synchronous string-keyed storage substrate.

    - set() raises StorageFullError when the write would exceed the capacity
    - durable=False marks a volatile substitute (no backups, no persistence)
    """

    durable: bool

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...
    def keys(self) -> list[str]: ...
    def __len__(self) -> int: ...


class ConsoleUI(Protocol):
    """Connector-side port: how commands talk back to the user."""

    def emit(self, text: str) -> None: ...
    def confirm(self, question: str) -> bool: ...
