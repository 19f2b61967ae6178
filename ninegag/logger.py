"""
Logging configuration for the ninegag feed library.
"""

import logging
import sys
from typing import Optional


def setup_logger(
    name: str = "ninegag",
    level: int = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up and return the package logger.

    Args:
        name: Logger name
        level: Logging level (default: INFO)
        log_file: Optional file path for logging

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Handlers are installed once; later calls only adjust the level
    if logger.handlers:
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    logger.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # stderr: stdout carries the runner's JSON output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


logger = setup_logger()


def get_module_logger(module_name: str) -> logging.Logger:
    """
    Get a child logger for one pipeline stage.

    Child loggers (e.g. "ninegag.sections") share the package handlers, and
    their name in the output tells which stage produced a message.

    Args:
        module_name: Name of the stage (e.g. 'fetcher', 'classifier')

    Returns:
        Child logger instance
    """
    return logging.getLogger(f"ninegag.{module_name}")
