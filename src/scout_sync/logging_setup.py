# src/scout_sync/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "scout.log"

# Loggers that speak on every poll cycle. The file log keeps their detail.
_POLLING_LOGGERS = ("scout_sync.supervisor.", "scout_sync.core.periodic")

# HTTP client libraries log each request at INFO.
_QUIET_LIBRARIES = ("httpx", "httpcore")

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the operator console readable during an event.

    Queue and command logs pass through. Polling loggers show up only at
    WARNING+, and anything outside scout_sync (py.warnings included) only at ERROR+.
    """

    def __init__(self, polling_prefixes: Iterable[str] = _POLLING_LOGGERS) -> None:
        super().__init__()
        self._polling = tuple(polling_prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("scout_sync."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._polling):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/scout",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """
    Route logs to a filtered console and a rotating file under `log_dir`.

    The file rolls over at `max_bytes` and keeps `backup_count` old copies.
    Returns the active log file path.
    Call once at startup; any handlers already on the root logger are replaced.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    # console
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    # file: everything, for post-event upload forensics
    file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
