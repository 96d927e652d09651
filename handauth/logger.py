"""
handauth Logging System
Provides structured logging to separate files with automatic rotation.

Library modules log through ``handauth.*`` loggers and write nothing until
``configure_logging()`` attaches handlers (the CLI does so on startup).

Log Files:
- handauth.log: Everything logged by the library (debug details included)
- enrollment.log: Enrollment and verification results
- error.log: Errors and exceptions
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from handauth.config import LOG_DIR, VERBOSE


ROOT_LOGGER_NAME = "handauth"

# Log formats
DETAILED_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def _create_rotating_handler(
    log_file: Path,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    formatter_string: Optional[str] = None,
    level: int = logging.NOTSET
) -> RotatingFileHandler:
    """
    Create a rotating file handler.

    Args:
        log_file: Path to the log file
        max_bytes: Max file size before rotation (default 10MB)
        backup_count: Number of backup files to keep (default 5)
        formatter_string: Log format string (default DETAILED_FORMAT)
        level: Minimum level written by this handler

    Returns:
        Configured RotatingFileHandler
    """
    handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setLevel(level)

    formatter = logging.Formatter(formatter_string or DETAILED_FORMAT)
    handler.setFormatter(formatter)

    return handler


def configure_logging(
    log_dir: Optional[Path] = None,
    verbose: Optional[bool] = None,
    level: int = logging.INFO
) -> logging.Logger:
    """
    Attach file (and optionally console) handlers to the handauth loggers.

    Calling it again is a no-op once handlers are attached.

    Args:
        log_dir: Directory for log files (uses config default if None)
        verbose: Also log to the console (uses config default if None)
        level: Logging level of the library logger (default INFO)

    Returns:
        The configured root ``handauth`` logger
    """
    if log_dir is None:
        log_dir = LOG_DIR
    if verbose is None:
        verbose = VERBOSE

    logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(level)
    logger.propagate = False  # Don't propagate to root logger

    logger.addHandler(_create_rotating_handler(log_dir / "handauth.log"))
    logger.addHandler(_create_rotating_handler(log_dir / "error.log", level=logging.ERROR))

    results = logging.getLogger(f"{ROOT_LOGGER_NAME}.results")
    results.addHandler(_create_rotating_handler(log_dir / "enrollment.log"))

    # Add console handler if verbose
    if verbose:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(DETAILED_FORMAT))
        logger.addHandler(console)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a library logger below the ``handauth`` namespace.

    Args:
        name: Module name (``__name__``) or a short name

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


results_logger = get_logger("results")
error_logger = get_logger("errors")


# Convenience functions

def _format_details(details: Optional[Dict[str, Any]]) -> str:
    if not details:
        return ""
    detail_parts = [f"{k}={v}" for k, v in details.items()]
    return f" - {', '.join(detail_parts)}"


def log_enrollment(
    identifier: str,
    result: str,
    details: Optional[Dict[str, Any]] = None
):
    """
    Log an enrollment result.

    Args:
        identifier: Enrolled identity
        result: Operation result (SUCCESS, FAILURE, ...)
        details: Additional details dict (samples, surviving regions, ...)
    """
    results_logger.info(f"ENROLL {result} - identifier={identifier}{_format_details(details)}")


def log_verification(
    probe: str,
    accepted: bool,
    details: Optional[Dict[str, Any]] = None
):
    """
    Log a verification decision.

    Args:
        probe: Probe image name
        accepted: Decision
        details: Additional details dict (threshold, area scores, ...)
    """
    result = "ACCEPT" if accepted else "REJECT"
    results_logger.info(f"VERIFY {result} - probe={probe}{_format_details(details)}")


def log_error(
    error: Exception,
    context: Optional[str] = None
):
    """
    Log application error.

    Args:
        error: Exception object
        context: Context where error occurred (identity, file, function name, ...)
    """
    context_info = f" in {context}" if context else ""

    error_logger.error(
        f"{type(error).__name__}: {str(error)}{context_info}",
        exc_info=error
    )
