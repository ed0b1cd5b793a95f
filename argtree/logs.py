"""Logging setup and utilities.

The engine traces its dispatch state machine at DEBUG level on the "argtree"
logger. Nothing is printed unless the host application calls init_logger() (or
configures logging itself); the package installs a NullHandler on import.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

__all__ = [
    "LogObjects",
    "get_logger",
    "init_logger",
]

ROOT = "argtree"


class LogObjects:
    """Reusable objects for loggers."""

    handlers: list[logging.Handler] = []


def init_logger(level: int = logging.DEBUG, filename: str | None = None) -> None:
    """Attach rich console (and optional file) handlers to the package logger.

    Args:
        level: threshold for the package logger
        filename: optional filename to log to
    """
    logger = logging.getLogger(ROOT)
    for handler in LogObjects.handlers:
        logger.removeHandler(handler)
    LogObjects.handlers.clear()

    screen = RichHandler(console=Console(stderr=True), show_time=False, show_path=level <= logging.DEBUG)
    screen.setFormatter(logging.Formatter(r"%(message)s"))
    LogObjects.handlers.append(screen)

    if filename:
        file_handler = logging.FileHandler(filename)
        file_handler.setFormatter(logging.Formatter(fmt=r"%(asctime)s [%(levelname)s] %(name)s :: %(message)s"))
        LogObjects.handlers.append(file_handler)

    for handler in LogObjects.handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


def get_logger(name: str = ROOT, level: int | None = None) -> logging.Logger:
    """Return a named logger below the package logger.

    Args:
        name (str): logger's name, "argtree" or a dotted child of it
        level (int): logger's level (inherited if not set)

    Returns:
        The logger instance
    """
    if name != ROOT and not name.startswith(ROOT + "."):
        name = f"{ROOT}.{name}"
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


logging.getLogger(ROOT).addHandler(logging.NullHandler())
