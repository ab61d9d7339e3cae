"""Logging configuration for the osdeploy package."""
import logging
import sys
from typing import Optional

import typer

from .config import Config

LEVEL_COLORS = {
    logging.DEBUG: typer.colors.BLUE,
    logging.INFO: typer.colors.GREEN,
    logging.WARNING: typer.colors.YELLOW,
    logging.ERROR: typer.colors.RED,
    logging.CRITICAL: typer.colors.BRIGHT_RED,
}


class ColorFormatter(logging.Formatter):
    """Timestamped formatter that colours each record by severity."""

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None,
                 use_color: bool = True):
        super().__init__(fmt or Config.LOG_FORMAT, datefmt or Config.LOG_DATEFMT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.use_color:
            return message
        color = LEVEL_COLORS.get(record.levelno)
        return typer.style(message, fg=color) if color else message


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Set up a logger with the specified name and log level.

    Args:
        name: The name of the logger
        level: The logging level (default: logging.INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(ColorFormatter(use_color=sys.stderr.isatty()))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def setup_logging(debug_mode: bool = False) -> logging.Logger:
    """Configure the osdeploy logger tree based on debug mode."""
    if debug_mode:
        level = logging.DEBUG
    else:
        level = getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logger = setup_logger("osdeploy", level)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)

    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('kubernetes').setLevel(logging.WARNING)
    return logger
