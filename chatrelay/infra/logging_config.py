"""
Centralized logging configuration for chatrelay.

Configures the ``chatrelay`` parent logger so every child logger
(chatrelay.services.context_cache, chatrelay.workers.llm, ...) inherits
handlers and level automatically.
"""

from __future__ import annotations

import logging
from typing import Optional

ROOT_LOGGER_NAME = "chatrelay"

_logging_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure chatrelay logging with console output.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    parent_logger = logging.getLogger(ROOT_LOGGER_NAME)
    parent_logger.setLevel(numeric_level)

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setLevel(numeric_level)
    console.setFormatter(fmt)
    parent_logger.addHandler(console)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the chatrelay namespace."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
