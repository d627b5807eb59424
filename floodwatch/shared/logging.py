"""Logging configuration utilities."""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    quiet_loggers: Optional[List[str]] = None,
) -> None:
    """Configure logging for floodwatch services.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format_string: Custom format string for log messages.
        quiet_loggers: List of logger names to set to WARNING level.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Convert string to logging level
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=format_string,
    )

    # Quiet down verbose third-party loggers
    default_quiet = ["asyncio", "aiohttp", "paho"]
    quiet_loggers = (quiet_loggers or []) + default_quiet

    for logger_name in quiet_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


class DiagnosticsBuffer(logging.Handler):
    """Keeps recent warning/error log records for upload to the store.

    The gateway attaches this to the ``floodwatch`` logger and drains it
    into ``systemLogs/<timestampMs>`` whenever the store is reachable.
    Oldest entries are discarded once ``capacity`` is reached.
    """

    def __init__(self, capacity: int = 50, level: int = logging.WARNING):
        super().__init__(level=level)
        self._entries: Deque[Dict[str, object]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._entries.append({
                "timestamp": int(record.created * 1000),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            })
        except Exception:
            self.handleError(record)

    def drain(self) -> List[Dict[str, object]]:
        """Remove and return all buffered entries, oldest first."""
        entries = list(self._entries)
        self._entries.clear()
        return entries

    def requeue(self, entries: List[Dict[str, object]]) -> None:
        """Put entries back at the front after a failed upload."""
        for entry in reversed(entries):
            if len(self._entries) == self._entries.maxlen:
                break
            self._entries.appendleft(entry)

    def __len__(self) -> int:
        return len(self._entries)
