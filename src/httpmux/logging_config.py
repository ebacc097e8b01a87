"""
Logging configuration for httpmux.

Console logging on stderr, plus an optional rotating log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOGGER_NAME = "httpmux"

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-20s | "
    "%(lineno)-4d | %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "WARNING",
    log_file: str | Path | None = None,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Set up the package logger.

    Handlers from an earlier call are closed and replaced.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating log file; parent directories are created
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # stderr, so stdout carries only command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def configure_logging(debug: bool = False, log_file: str | Path | None = None) -> None:
    """Quick logging configuration for the command line."""
    setup_logging(level="DEBUG" if debug else "WARNING", log_file=log_file)


class ErrorTracker:
    """Count request failures by kind."""

    def __init__(self):
        self.errors: dict[str, int] = {}
        self.logger = logging.getLogger(__name__)

    def log_error(self, error_type: str, message: str, context: dict[str, Any] | None = None) -> None:
        """
        Log a failure and count it under its kind.

        Args:
            error_type: Failure kind (e.g., 'timeout', 'dns_failure')
            message: Error message
            context: Additional context data
        """
        self.errors[error_type] = self.errors.get(error_type, 0) + 1

        log_msg = f"{error_type}: {message}"
        if context:
            log_msg += f" | Context: {context}"
        self.logger.error(log_msg)

    def get_error_counts(self) -> dict[str, int]:
        """Get error counts by type."""
        return self.errors.copy()
