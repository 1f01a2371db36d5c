"""
Logging Configuration Module

Provides consistent logging setup across the retrieval and generation
components. Modules keep using ``logging.getLogger(__name__)``; this only
wires handlers onto the application loggers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAMESPACES = ("common", "chunking", "retrieval", "generation")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path to log file
        format_string: Optional custom format string

    Returns:
        Configured application logger
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Module loggers are named after their package (getLogger(__name__))
    for namespace in LOGGER_NAMESPACES:
        package_logger = logging.getLogger(namespace)
        package_logger.setLevel(level)
        package_logger.handlers.clear()
        for handler in handlers:
            package_logger.addHandler(handler)
        package_logger.propagate = False

    logger = get_logger("app")
    logger.setLevel(level)
    logger.handlers.clear()
    for handler in handlers:
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for scripts and entry points.

    Args:
        name: Short component name

    Returns:
        Logger instance
    """
    return logging.getLogger(f"rag.{name}")
