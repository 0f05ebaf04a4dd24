# src/todo_keeper/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "todo.log"

_FMT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable.

    todo_keeper records pass, except the background auto-backup which only
    shows WARNING+. Everything else (third-party, py.warnings) needs ERROR+.
    """

    quiet = frozenset({"todo_keeper.tasks.backup_scheduler"})

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("todo_keeper."):
            if record.name in self.quiet:
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


def _file_handler(log_dir: Path, level: int) -> logging.Handler | None:
    """File handler under log_dir, or None when the directory is unusable."""
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(str(log_dir / LOG_FILE_NAME), encoding="utf-8")
    except OSError:
        return None
    handler.setLevel(level)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/todo",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path | None:
    """
    Configure root logging: a filtered stderr handler plus a full-detail
    file handler in log_dir.

    A log_dir that cannot be created or written does not stop the app: the
    file handler is skipped and a warning goes to the console. Returns the
    log file path, or None when logging to console only.

    Call this once, before the first log record.
    """
    log_dir = Path(log_dir)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=_FMT, datefmt=_DATEFMT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = _file_handler(log_dir, file_level)
    if fh is not None:
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)

    if fh is None:
        logging.getLogger(__name__).warning("Cannot write logs under %s; logging to console only.", log_dir)
        return None
    return log_dir / LOG_FILE_NAME
