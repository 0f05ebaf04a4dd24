# src/todo_keeper/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.ports import ConsoleUI
from ..core.state import AppState
from ..tasks.task_api import count_label

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class TerminalUI:
    """ConsoleUI over stdin/stdout."""

    def emit(self, text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    def confirm(self, question: str) -> bool:
        try:
            answer = input(f"{question} [y/N]: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            return False
        return answer in ("y", "yes")


class _UnlockedPrompts:
    """
    ConsoleUI for commands running under state.lock. The lock is released
    while a confirmation is pending; the auto-backup thread may run meanwhile.
    """

    def __init__(self, ui: ConsoleUI, lock) -> None:
        self._ui = ui
        self._lock = lock

    def emit(self, text: str) -> None:
        self._ui.emit(text)

    def confirm(self, question: str) -> bool:
        self._lock.release()
        try:
            return self._ui.confirm(question)
        finally:
            self._lock.acquire()


def run_console_loop(state: AppState, ui: ConsoleUI | None = None) -> None:
    """
    Blocking REPL. Slash commands go through the command registry;
    any other non-empty line is added as a new task.
    """
    ui = ui or TerminalUI()
    logger.info("Console connector started (storage=%s).", state.store.kind.value)
    _print_ts(
        f"[CONSOLE] {count_label(len(state.tasks))} loaded. "
        "Type a task to add it. Use /help for commands. Use /exit to quit.\n"
    )
    if not state.store.is_durable:
        _print_ts("[CONSOLE] Storage unavailable: changes will be lost when you quit.")

    lock = getattr(state, "lock", None)

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        line = user_input if user_input.startswith("/") else f"/add {user_input}"
        try:
            if lock is None:
                reply = command_registry.handle(state, line, ui)
            else:
                with lock:
                    reply = command_registry.handle(state, line, _UnlockedPrompts(ui, lock))
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
