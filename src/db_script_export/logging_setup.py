"""Console logging for the export CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "db_script_export"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Configure and return the package logger.

    Warnings (circular references) are always shown; ``verbose`` adds the
    debug trace of every object visited. Records go to stderr so stdout
    output carries nothing but script text.

    Args:
        verbose: Log at DEBUG instead of WARNING
        console: Rich console to log to (default: a stderr console)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Avoid adding handlers multiple times
    if any(isinstance(handler, RichHandler) for handler in logger.handlers):
        return logger

    handler = RichHandler(
        console=console if console is not None else Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger
