"""
Logging configuration for the kiosk trigger service.

This module provides a centralized logging setup with support for:
- Console output with colored formatting
- File rotation with size limits
- Remote logging to Loki
- A structured, replayable event log for UI/diagnostic collaborators
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Final, Literal, Optional

import colorlog
import httpx

from kiosk_trigger.configs import LOG_FILE, LOKI_URL


# =============================================================================
# Constants
# =============================================================================

DEFAULT_LOG_FORMAT: Final[str] = (
    "%(name)s | %(asctime)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s"
)
DEFAULT_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
MAX_LOG_FILE_SIZE: Final[int] = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT: Final[int] = 3
LOKI_TIMEOUT: Final[float] = 2.0

SUCCESS: Final[int] = 25
logging.addLevelName(SUCCESS, "SUCCESS")


# =============================================================================
# Color Configuration
# =============================================================================

LOG_COLORS: Final[dict[str, str]] = {
    "DEBUG": "cyan",
    "INFO": "white",
    "SUCCESS": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


# =============================================================================
# Loki Integration
# =============================================================================

def send_to_loki(url: str, level: str, message: str, app: str) -> None:
    """
    Send a log entry to Loki.

    Args:
        url: Loki push endpoint.
        level: Log level name.
        message: Log message.
        app: Application name for Loki labels.
    """
    try:
        log_entry = {
            "streams": [
                {
                    "stream": {"level": level, "app": app},
                    "values": [[str(int(time.time() * 1e9)), message]],
                }
            ]
        }
        with httpx.Client() as client:
            client.post(url, json=log_entry, timeout=LOKI_TIMEOUT)
    except Exception as e:
        # Avoid recursive logging - just print to stderr
        print(f"[Loki send error]: {e}")


class LokiHandler(logging.Handler):
    """
    Logging handler that ships records to Loki.

    Attributes:
        url: Loki push endpoint.
        app: Application name for Loki labels.
    """

    def __init__(self, url: str, app: str) -> None:
        super().__init__()
        self.url = url
        self.app = app

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            send_to_loki(self.url, record.levelname.upper(), message, self.app)
        except Exception:
            self.handleError(record)


# =============================================================================
# Logger Factory
# =============================================================================

def get_logger(
    name: str,
    app: str = "kiosk",
    log_file: Optional[str] = None,
    loki_url: Optional[str] = None,
    level: int = logging.DEBUG,
) -> logging.Logger:
    """
    Create and configure a logger with console, file, and Loki handlers.

    Args:
        name: Logger name.
        app: Application name for Loki labels.
        log_file: Path to the rotating log file, or None for console only.
        loki_url: Loki push endpoint, or None to disable remote shipping.
        level: Logging level (default: DEBUG).

    Returns:
        Configured logger instance.
    """
    logger_instance = logging.getLogger(name)
    logger_instance.setLevel(level)

    # Avoid duplicate handlers on repeated calls
    if logger_instance.handlers:
        return logger_instance

    console_formatter = colorlog.ColoredFormatter(
        f"%(name)s | %(log_color)s%(asctime)s | %(levelname)s | "
        f"%(funcName)s:%(lineno)d | %(message)s",
        datefmt=DEFAULT_DATE_FORMAT,
        log_colors=LOG_COLORS,
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger_instance.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(fmt=DEFAULT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT)
        )
        logger_instance.addHandler(file_handler)

    if loki_url:
        loki_handler = LokiHandler(loki_url, app)
        loki_handler.setLevel(level)
        loki_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt=DEFAULT_DATE_FORMAT,
            )
        )
        logger_instance.addHandler(loki_handler)

    return logger_instance


# =============================================================================
# Default Logger Instance
# =============================================================================

logger = get_logger(
    name="KIOSK",
    app="kiosk_trigger",
    log_file=LOG_FILE,
    loki_url=LOKI_URL,
)


# =============================================================================
# Structured Event Log
# =============================================================================

LogLevel = Literal["info", "success", "warn", "error", "debug"]

LEVEL_NUMBERS: Final[dict[str, int]] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": SUCCESS,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class LogEntry:
    """One structured event-sink entry."""

    level: LogLevel
    category: str
    message: str
    data: Any = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "category": self.category,
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        return result


LogListener = Callable[[LogEntry], None]


class EventLog:
    """
    Structured event sink shared by the kiosk components.

    Every entry is forwarded to the Python logger and kept in a bounded
    history so a diagnostic view attached later still sees recent events.

    Attributes:
        max_entries: Number of entries kept in history.
    """

    def __init__(
        self,
        py_logger: Optional[logging.Logger] = None,
        max_entries: int = 200,
    ) -> None:
        self._logger = py_logger or logger
        self.max_entries = max_entries
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._listeners: list[LogListener] = []

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """
        Register a listener and replay the current history to it.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)
        for entry in list(self._entries):
            listener(entry)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: LogListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def emit(
        self,
        level: LogLevel,
        category: str,
        message: str,
        data: Any = None,
    ) -> LogEntry:
        """
        Record an event and fan it out to listeners.

        Args:
            level: One of info, success, warn, error, debug.
            category: Component tag, e.g. ``NETWORK`` or ``USB``.
            message: Human-readable message.
            data: Optional structured payload.

        Returns:
            The recorded entry.
        """
        entry = LogEntry(level=level, category=category, message=message, data=data)
        self._entries.append(entry)

        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as e:
                self._logger.error(f"Event log listener error: {e}")

        suffix = f" | {data}" if data is not None else ""
        self._logger.log(
            LEVEL_NUMBERS[level],
            f"[{category}] {message}{suffix}",
            stacklevel=3,
        )
        return entry

    def info(self, category: str, message: str, data: Any = None) -> LogEntry:
        return self.emit("info", category, message, data)

    def success(self, category: str, message: str, data: Any = None) -> LogEntry:
        return self.emit("success", category, message, data)

    def warn(self, category: str, message: str, data: Any = None) -> LogEntry:
        return self.emit("warn", category, message, data)

    def error(self, category: str, message: str, data: Any = None) -> LogEntry:
        return self.emit("error", category, message, data)

    def debug(self, category: str, message: str, data: Any = None) -> LogEntry:
        return self.emit("debug", category, message, data)
