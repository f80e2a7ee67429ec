"""Logging utilities for status and orchestration events."""

from __future__ import annotations

import atexit
import logging
import logging.handlers
from pathlib import Path
import queue

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text


console = Console()

FILE_LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(message)s"


def setup_logging() -> logging.Logger:
    logger = logging.getLogger("pia_status")
    logger.setLevel(logging.INFO)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(rich_tracebacks=True, console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


logger = setup_logging()

_listener: logging.handlers.QueueListener | None = None
_queue_handler: logging.Handler | None = None
_file_log_path: Path | None = None
_atexit_registered = False


def set_level(level_name: str) -> None:
    """Apply a textual level name to the shared logger."""

    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        logger.warning("Unknown logging level %r; using INFO", level_name)
        level = logging.INFO
    logger.setLevel(level)


def _stop_file_logging() -> None:
    global _listener, _queue_handler, _file_log_path

    if _listener is not None:
        _listener.stop()
        _listener = None
    if _queue_handler is not None:
        logger.removeHandler(_queue_handler)
        _queue_handler = None
    _file_log_path = None


def enable_file_logging(log_path: Path, *, max_bytes: int = 1_000_000, backups: int = 3) -> None:
    """Mirror the status logger to a rotating file.

    Records are handed to a queue so file writes never run on the event loop.
    Calling again with the same path is a no-op.
    """

    global _listener, _queue_handler, _file_log_path, _atexit_registered

    log_path = log_path.expanduser()
    if _file_log_path == log_path and _listener is not None:
        return
    _stop_file_logging()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=max(0, int(max_bytes)),
        backupCount=max(0, int(backups)),
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    _queue_handler = logging.handlers.QueueHandler(log_queue)
    logger.addHandler(_queue_handler)
    _listener = logging.handlers.QueueListener(log_queue, file_handler)
    _listener.start()
    _file_log_path = log_path

    if not _atexit_registered:
        atexit.register(_stop_file_logging)
        _atexit_registered = True


def log_operation_result(operation: str, outcome: str, failed_step: str | None) -> None:
    style = "bold green" if outcome == "completed" else "bold yellow"
    suffix = f" (failed step: {failed_step})" if failed_step else ""
    logger.info(Text(f"[Orchestrator] {operation} -> {outcome}{suffix}", style=style))
