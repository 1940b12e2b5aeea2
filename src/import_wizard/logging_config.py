"""
Logging configuration for import-wizard.

Provides centralized logging setup with appropriate levels and formatting.
Operator-facing tables go through rich in reporting.py; everything else is
logged here.
"""

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "import_wizard"


def setup_logging(
    level: Optional[str] = None, format_detailed: bool = False
) -> logging.Logger:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               If None, will use environment variable LOG_LEVEL or default to INFO
        format_detailed: If True, use detailed format with timestamps and module names

    Returns:
        Configured logger instance
    """
    # Get the root logger for the import_wizard package
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Clear any existing handlers to avoid duplication
    logger.handlers.clear()

    # Determine logging level
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")

    # Set the logging level
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    # Console handler on stderr, stdout carries the rich tables
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)

    # Create formatter
    if format_detailed or os.getenv("LOG_FORMAT", "").lower() == "detailed":
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        # Simple format for user-friendly console output
        formatter = logging.Formatter("%(levelname)s: %(message)s")

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Module name (usually __name__)

    Returns:
        Logger instance
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)

    # Ensure the name is under the import_wizard namespace
    if not name.startswith(ROOT_LOGGER_NAME):
        if name.startswith("__main__"):
            name = f"{ROOT_LOGGER_NAME}.main"
        else:
            name = f'{ROOT_LOGGER_NAME}.{name.split(".")[-1]}'

    return logging.getLogger(name)
