"""
narrowssh Centralized Logging
-----------------------------
Structured logging with invoking-user stamps for auditability.

Design:
- Every record carries the uid and pid of the invoking process
- Supports both console (Rich) and file (JSON) output
- Clear severity discipline: DEBUG=per-path checks, INFO=files read,
  WARNING=refused paths, ERROR=aborted run

Usage:
    from infra.logging import get_logger, configure_logging

    configure_logging(logging.INFO)
    logger = get_logger("security.walker")
    logger.info("Reading control /etc/narrowssh/control.toml")
"""

import json
import logging
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "narrowssh"
ERRORS_LOGGER = f"{ROOT_LOGGER}.errors"


class InvocationFilter(logging.Filter):
    """Logging filter that adds the invoking uid and pid to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "uid"):
            record.uid = os.getuid()
        if not hasattr(record, "pid"):
            record.pid = os.getpid()
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured file logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "uid": getattr(record, "uid", None),
            "pid": getattr(record, "pid", None),
        }

        # Add exception info if present
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


# Global configuration state
_logging_initialized = False
_log_file_path: Optional[Path] = None


def configure_logging(
    level: int = logging.WARNING,
    log_file: Optional[str] = None,
    console: bool = True,
    force: bool = False,
) -> None:
    """
    Configure the narrowssh logging system.

    Args:
        level: Console logging level (default WARNING)
        log_file: Path of a JSON log file (default: no file output)
        console: Enable console output on stderr
        force: Reconfigure even if already configured
    """
    global _logging_initialized, _log_file_path

    if _logging_initialized and not force:
        return

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG if log_file else level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    invocation_filter = InvocationFilter()

    if console:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        console_handler.addFilter(invocation_filter)
        # Error reports are printed by the caller as an error chain
        console_handler.addFilter(lambda record: not record.name.startswith(ERRORS_LOGGER))
        root_logger.addHandler(console_handler)

    if log_file:
        _log_file_path = Path(log_file)
        _log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            str(_log_file_path),
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(invocation_filter)
        root_logger.addHandler(file_handler)

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the narrowssh namespace.

    Args:
        name: Logger name (will be prefixed with 'narrowssh.' if not already)

    Returns:
        Configured logger
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    return logging.getLogger(name)


def get_log_file() -> Optional[Path]:
    """Path of the active JSON log file, if any."""
    return _log_file_path
