"""Centralized logging configuration for the restock engine.

Usage:
    from restock_engine.log_config import get_logger
    logger = get_logger(__name__)

Environment variables:
    RESTOCK_LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR). Default: WARNING
"""

import logging
import os
import sys

NAMESPACE = "restock_engine"

DEFAULT_LOG_LEVEL = logging.WARNING

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_logging_configured = False


def parse_level(value: str | int | None) -> int | None:
    """Convert a level name or number to a logging level, or None if unknown."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return _LEVELS.get(value.strip().upper())


def configure_logging(level: int | str | None = None) -> None:
    """Attach a stderr handler to the engine's logger namespace.

    Args:
        level: Log level to use. If None, reads RESTOCK_LOG_LEVEL or uses
               DEFAULT_LOG_LEVEL.
    """
    global _logging_configured

    if _logging_configured:
        if level is not None:
            set_log_level(level)
        return

    resolved = parse_level(level)
    if resolved is None:
        resolved = parse_level(os.environ.get("RESTOCK_LOG_LEVEL")) or DEFAULT_LOG_LEVEL

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(LOG_FORMAT_DEBUG if resolved == logging.DEBUG else LOG_FORMAT)
    )

    root_logger = logging.getLogger(NAMESPACE)
    root_logger.setLevel(resolved)
    root_logger.addHandler(handler)
    root_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the engine namespace.

    Args:
        name: Module name, typically __name__

    Returns:
        Logger instance
    """
    if name == NAMESPACE or name.startswith(NAMESPACE + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{NAMESPACE}.{name}")


def set_log_level(level: int | str) -> None:
    """Change the log level at runtime."""
    resolved = parse_level(level)
    if resolved is None:
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(NAMESPACE)
    logger.setLevel(resolved)

    for handler in logger.handlers:
        if resolved == logging.DEBUG:
            handler.setFormatter(logging.Formatter(LOG_FORMAT_DEBUG))
        else:
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
