# src/todo_keeper/tasks/backup_scheduler.py

from __future__ import annotations

"""
Auto-backup scheduler.

A small polling loop that, every interval:
- compares the last-saved timestamp with the latest backup's timestamp,
- takes an "auto" backup if tasks were saved since (or no backup exists yet).

Rapid saves inside one interval collapse into one backup of the latest state.
"""

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, ContextManager

from .task_models import OpResult

if TYPE_CHECKING:
    from ..core.state import AppState
    from .task_store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60 * 60.0


def run_auto_backup_once(store: TaskStore, lock: ContextManager | None = None) -> OpResult | None:
    """
    One scheduler tick. Returns the backup result, or None if no backup was due.

    The lock (if any) serializes the tick with UI-side store operations.
    """
    try:
        with lock or contextlib.nullcontext():
            result = store.maybe_auto_backup()
    except Exception:
        logger.exception("Auto-backup tick failed")
        return None

    if result is None:
        logger.debug("Auto-backup: nothing saved since the last backup")
    elif result:
        logger.info("Auto-backup created key=%s", result.value)
    else:
        logger.warning("Auto-backup failed: %s", result.error)
    return result


async def run_auto_backup(
        store: TaskStore,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        lock: ContextManager | None = None,
        stop_event: asyncio.Event | None = None,
) -> None:
    """
    Polling loop: wait one interval, tick, repeat.

    Stops when stop_event is set, or when the coroutine/task is cancelled.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        if stop_event is None:
            await asyncio.sleep(sleep_s)
        else:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                logger.info("Auto-backup scheduler stopped.")
                return

        run_auto_backup_once(store, lock)


@dataclass
class AutoBackupRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal auto-backup stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_auto_backup_in_background(
        state: AppState,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
) -> AutoBackupRunner | None:
    """
    Start the auto-backup loop in a background thread with its own event loop.

    Why a thread: the console REPL blocks on input(). Both sides take
    state.lock around store operations, so they never interleave.
    """
    if not state.store.is_durable:
        logger.info("Volatile storage: auto-backup not started.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                run_auto_backup(
                    state.store,
                    interval_seconds=interval_seconds,
                    lock=state.lock,
                    stop_event=stop_event,
                )
            )
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="auto-backup", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Auto-backup thread did not initialize properly.")
        return None

    logger.info("Auto-backup thread started (interval=%ss).", interval_seconds)
    return AutoBackupRunner(thread=t, loop=loop, stop_event=stop_event)
