"""Logging setup for the agentgpt package, rendered through rich."""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "agentgpt"


def setup_logging(level: Optional[str] = None, console: Optional[Console] = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL or WARNING.
        console: Rich console to write to, so log lines interleave with the UI

    Returns:
        Configured logger
    """
    level = level or os.getenv("LOG_LEVEL", "WARNING")
    log_level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    handler = RichHandler(console=console, show_path=False, markup=False, rich_tracebacks=True,
                          log_time_format="%H:%M:%S")
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
