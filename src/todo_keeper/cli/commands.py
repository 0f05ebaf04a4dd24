# src/todo_keeper/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.ports import ConsoleUI
from ..core.state import AppState
from ..tasks.task_api import (
    add_task,
    clear_all,
    count_label,
    delete_task,
    edit_task,
    restore_backup,
)
from ..tasks.task_models import Task, parse_instant

CommandHandler = Callable[[AppState, list[str], ConsoleUI], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, ui: ConsoleUI) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."
        return handler(state, args, ui)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_local(value: str | None) -> str:
    dt = parse_instant(value)
    if dt is None:
        return ""
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _fmt_due(value: str | None) -> str:
    # Due dates are calendar dates; no local-time shift.
    dt = parse_instant(value)
    return dt.date().isoformat() if dt else ""


def _pick_task(state: AppState, arg: str) -> Task | None:
    """Resolve a 1-based list number (as shown by /list) to a task."""
    try:
        idx = int(arg)
    except ValueError:
        return None
    if 1 <= idx <= len(state.tasks):
        return state.tasks[idx - 1]
    return None


def _split_due(args: list[str]) -> tuple[str, str | None]:
    """'/add Buy milk @2024-05-01' -> ('Buy milk', '2024-05-01')."""
    words = list(args)
    due = None
    if words and words[-1].startswith("@"):
        due = words.pop()[1:]
    return " ".join(words), due


def format_task_line(i: int, task: Task) -> str:
    line = f"{i}. {task.text}  ({_fmt_local(task.created_at)})"
    if task.due_date:
        line += f"  due {_fmt_due(task.due_date)}"
    return line


def cmd_help(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    if not state.tasks:
        return "No tasks yet."
    lines = [f"To-do list ({count_label(len(state.tasks))}):"]
    lines.extend(format_task_line(i, t) for i, t in enumerate(state.tasks, start=1))
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    text, due = _split_due(args)
    result = add_task(state, text, due_date=due)
    if not result:
        return f"Not added: {result.error}"
    return f"Added: {result.value.text} ({count_label(len(state.tasks))})"


def cmd_edit(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    """
    /edit <n> <new text>
    """
    if len(args) < 2:
        return "Usage: /edit <n> <new text>"
    task = _pick_task(state, args[0])
    if task is None:
        return f"No task number {args[0]}. Use /list."
    result = edit_task(state, task.id, text=" ".join(args[1:]))
    if not result:
        return f"Not changed: {result.error}"
    return f"Updated: {result.value.text}"


def cmd_due(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    """
    /due <n> <YYYY-MM-DD>  -> set due date
    /due <n> none          -> clear it
    """
    if len(args) != 2:
        return "Usage: /due <n> <YYYY-MM-DD|none>"
    task = _pick_task(state, args[0])
    if task is None:
        return f"No task number {args[0]}. Use /list."
    due = None if args[1].lower() in ("none", "-", "clear") else args[1]
    result = edit_task(state, task.id, due_date=due)
    if not result:
        return f"Not changed: {result.error}"
    if result.value.due_date:
        return f"Due date of '{result.value.text}' set to {_fmt_due(result.value.due_date)}."
    return f"Due date of '{result.value.text}' cleared."


def cmd_delete(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    if len(args) != 1:
        return "Usage: /del <n>"
    task = _pick_task(state, args[0])
    if task is None:
        return f"No task number {args[0]}. Use /list."
    if not ui.confirm(f'Delete the task "{task.text}"?'):
        return "Cancelled."
    result = delete_task(state, task.id)
    if not result:
        return f"Not deleted: {result.error}"
    return f"Deleted: {task.text}"


def cmd_backup(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    result = state.store.create_backup()
    if not result:
        return f"Backup failed: {result.error}"
    return f"Backup created: {result.value}"


def cmd_backups(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    backups = state.store.get_available_backups()
    if not backups:
        return "No backups available."
    lines = ["Backups (newest first):"]
    for i, b in enumerate(backups, start=1):
        lines.append(f"{i}. {_fmt_local(b.timestamp)}  {b.reason}  {count_label(b.task_count)}  [{b.key}]")
    return "\n".join(lines)


def cmd_restore(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    """
    /restore <n>    -> backup number as shown by /backups
    /restore <key>  -> backup key
    """
    if len(args) != 1:
        return "Usage: /restore <n|key>"
    key = args[0]
    if key.isdigit():
        backups = state.store.get_available_backups()
        idx = int(key)
        if not 1 <= idx <= len(backups):
            return f"No backup number {key}. Use /backups."
        key = backups[idx - 1].key

    if not ui.confirm(f"Replace the current tasks with backup {key}?"):
        return "Cancelled."
    result = restore_backup(state, key)
    if not result:
        return f"Restore failed: {result.error}"
    return f"Restored {count_label(len(state.tasks))} from {key}. The previous state was backed up."


def cmd_stats(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    stats = state.store.get_memory_stats().as_dict()
    lines = ["Storage:"]
    for name, value in stats.items():
        lines.append(f"  {name}: {value}")
    return "\n".join(lines)


def cmd_clear(state: AppState, args: list[str], ui: ConsoleUI) -> str:
    """Two separate confirmations before the irreversible wipe."""
    if not ui.confirm("Delete ALL tasks and backups?"):
        return "Cancelled."
    if not ui.confirm("This cannot be undone. Are you really sure?"):
        return "Cancelled."

    logger.debug("Clear-all confirmed twice")
    ui.emit("Taking a final backup and wiping all task data...")
    result = clear_all(state)
    if not result:
        return f"Clear failed: {result.error}"
    return "All data cleared."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show the to-do list.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <text> [@YYYY-MM-DD].")
registry.register("edit", cmd_edit, help_text="Rename a task: /edit <n> <text>.")
registry.register("due", cmd_due, help_text="Set or clear a due date: /due <n> <YYYY-MM-DD|none>.")
registry.register("del", cmd_delete, help_text="Delete a task: /del <n>.", aliases=["rm"])
registry.register("backup", cmd_backup, help_text="Create a manual backup.")
registry.register("backups", cmd_backups, help_text="List available backups.")
registry.register("restore", cmd_restore, help_text="Restore a backup: /restore <n|key>.")
registry.register("stats", cmd_stats, help_text="Show storage usage.")
registry.register("clear", cmd_clear, help_text="Delete all tasks and backups (asks twice).")
