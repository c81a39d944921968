"""
Logger Module

Centralized logging for the timesheet engine: console output plus a
UTF-8 log file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# Application log file path (relative to project root)
_LOG_FILE_NAME = "app.log"

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Set by configure_logging(); None means <project root>/app.log
_default_log_file: Optional[Path] = None


def _get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def default_log_path() -> Path:
    return _default_log_file or _get_project_root() / _LOG_FILE_NAME


def configure_logging(log_file: Optional[str] = None) -> None:
    """
    Set the log file used by loggers created afterwards.

    Args:
        log_file: Path of the log file; empty or None restores app.log
    """
    global _default_log_file
    _default_log_file = Path(log_file) if log_file else None


def get_logger(name: str, log_file: Optional[str] = None) -> logging.Logger:
    """
    Get or create a logger with console and file handlers.

    Args:
        name: Logger name (typically component name like "Reconciliation")
        log_file: Optional custom log file path. If None, uses the default

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Handlers are attached once per logger name
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    # Console handler - INFO level and above
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler - DEBUG level and above
    log_path = Path(log_file) if log_file else default_log_path()
    try:
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Cannot open log file {log_path}, logging to console only: {e}")

    return logger
