"""
Logging for decode and nesting runs

Two channels: the stdlib ``backend`` logger for the process, and a
per-run LogCollector that keeps timestamped entries for the caller.
"""

import logging
import sys
from datetime import datetime
from typing import Callable, List, Optional

from .models import LogEntry, LogType


LogSink = Callable[..., None]

_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configures the logger for the 'backend' namespace.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file.
    """
    logger = logging.getLogger("backend")
    logger.setLevel(level)

    # Avoid duplicate handlers on uvicorn reload
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info("Logging initialized.")


class LogCollector:
    """
    Callable log sink ``(message, type)``.

    Entries are kept in order and mirrored to a stdlib logger. An optional
    ``forward`` sink receives every entry as well (used by the worker to
    relay log lines as they happen).
    """

    def __init__(self, logger: Optional[logging.Logger] = None,
                 forward: Optional[Callable[[LogEntry], None]] = None):
        self.entries: List[LogEntry] = []
        self._logger = logger or logging.getLogger("backend.run")
        self._forward = forward

    def __call__(self, message: str, type: LogType = "info") -> None:
        entry = LogEntry(
            time=datetime.now().strftime("%H:%M:%S"),
            message=message,
            type=type,
        )
        self.entries.append(entry)
        self._logger.log(_LEVELS.get(type, logging.INFO), message)
        if self._forward is not None:
            self._forward(entry)

    def clear(self) -> None:
        self.entries = []

    def dump(self) -> List[dict]:
        return [e.model_dump() for e in self.entries]


def null_sink(message: str, type: LogType = "info") -> None:
    """Sink that only writes to the stdlib logger"""
    logging.getLogger("backend.run").log(_LEVELS.get(type, logging.INFO), message)
