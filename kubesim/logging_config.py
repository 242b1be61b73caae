"""Logging configuration for kubesim.

The library is silent by default (the ``kubesim`` logger carries a
NullHandler). Applications opt in with the helpers below. Python logging is
separate from the narration log kept in simulation state: it records what
the engine did (lifecycle, scaling actions, rollbacks) for operators, while
the narration log is part of the simulated system.

Example usage:
    import kubesim

    kubesim.enable_console_logging(level="DEBUG")
    kubesim.enable_file_logging("logs/kubesim.log", max_bytes=5_000_000)
    kubesim.configure_from_env()

Environment variables:
    KUBESIM_LOGGING: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    KUBESIM_LOG_FILE: Path to log file (enables rotating file logging)
    KUBESIM_LOG_JSON: Set to "1" for JSON output
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Literal

__all__ = [
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5

LOGGER_NAME = "kubesim"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class JsonFormatter(logging.Formatter):
    """Formats log records as one JSON object per line.

    Example output:
        {"timestamp": "2026-01-15T10:30:00.123456+00:00", "level": "INFO",
         "logger": "kubesim.simulation", "message": "[hpa] Started at 1x (400 ms/tick)"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def _get_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def _clear_handlers() -> None:
    """Remove and close every handler except NullHandler."""
    logger = _get_logger()
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()


def _install(handler: logging.Handler, level: LogLevel | int) -> None:
    logger = _get_logger()
    logger.setLevel(_get_level(level))
    handler.setLevel(_get_level(level))
    logger.addHandler(handler)


def enable_console_logging(
    level: LogLevel | int = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Enable console (stderr) logging.

    Args:
        level: Log level name or int.
        format: Log message format string.
        date_format: Date format string for %(asctime)s.

    Returns:
        The created StreamHandler.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format, date_format))
    _install(handler, level)
    return handler


def enable_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    json_format: bool = False,
) -> RotatingFileHandler:
    """Enable rotating file logging.

    Args:
        path: Log file path. Parent directories are created.
        level: Log level name or int.
        max_bytes: Size at which the file rotates.
        backup_count: Rotated files to keep.
        json_format: Write JSON lines instead of plain text.

    Returns:
        The created RotatingFileHandler.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT))
    _install(handler, level)
    return handler


def enable_json_logging(level: LogLevel | int = "INFO") -> logging.StreamHandler:
    """Enable JSON console logging, one object per line on stderr."""
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    _install(handler, level)
    return handler


def configure_from_env() -> None:
    """Configure logging from ``KUBESIM_LOGGING``, ``KUBESIM_LOG_FILE`` and ``KUBESIM_LOG_JSON``.

    Does nothing when neither a level nor a file is set.
    """
    level = os.environ.get("KUBESIM_LOGGING", "").upper()
    log_file = os.environ.get("KUBESIM_LOG_FILE", "")
    use_json = os.environ.get("KUBESIM_LOG_JSON", "") == "1"

    if not level and not log_file:
        return

    level = level or "INFO"
    if log_file:
        enable_file_logging(log_file, level=level, json_format=use_json)
    elif use_json:
        enable_json_logging(level=level)
    else:
        enable_console_logging(level=level)


def set_level(level: LogLevel | int) -> None:
    """Set the level of the ``kubesim`` logger."""
    _get_logger().setLevel(_get_level(level))


def set_module_level(module: str, level: LogLevel | int) -> None:
    """Set the level of one submodule, e.g. ``set_module_level("simulation", "DEBUG")``."""
    logging.getLogger(f"{LOGGER_NAME}.{module}").setLevel(_get_level(level))


def disable_logging() -> None:
    """Remove all handlers and silence the ``kubesim`` logger."""
    logger = _get_logger()
    _clear_handlers()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.CRITICAL + 1)
