"""
Centralized logging configuration for llms-cms-generator
"""
from __future__ import annotations

import logging
import sys
from typing import Optional

# Package-wide logger, configured once
_logger: Optional[logging.Logger] = None

PACKAGE_LOGGER_NAME = "llms_cms_generator"


def get_logger(name: str = PACKAGE_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger below the package logger, configuring the package logger
    on first use.

    Args:
        name: Module name (``__name__``); names outside the package are
              attached below the package logger.

    Returns:
        Configured logger instance
    """
    global _logger

    if _logger is None:
        _logger = logging.getLogger(PACKAGE_LOGGER_NAME)
        _logger.setLevel(logging.INFO)

        # Avoid adding handlers multiple times
        if not _logger.handlers:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(logging.DEBUG)

            # Format: [LEVEL] message
            formatter = logging.Formatter(
                "[%(levelname)s] %(message)s",
                datefmt="%H:%M:%S"
            )
            console_handler.setFormatter(formatter)

            _logger.addHandler(console_handler)

    if name == PACKAGE_LOGGER_NAME:
        return _logger
    if not name.startswith(PACKAGE_LOGGER_NAME + "."):
        name = f"{PACKAGE_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level: int | str) -> None:
    """
    Set the package log level.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               or integer level
    """
    logger = get_logger()
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
