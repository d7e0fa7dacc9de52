"""
Centralized logging configuration using rich.logging.

Call setup_logging() once when the bridge starts. Console output goes through
rich; an optional plain-text log file keeps a timestamped record of the
session, which is what you want when the bridge runs headless next to the
DAW and the console is not visible.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

# Global flag to track if logging has been configured
_logging_configured = False

FILE_LOG_FORMAT = "[%(asctime)s.%(msecs)03d] %(levelname)-7s %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int = logging.INFO,
    show_time: bool = True,
    show_path: bool = False,
    rich_tracebacks: bool = True,
    console: Optional[Console] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Configure rich logging for the decksync library.

    Subsequent calls are ignored to avoid duplicate handlers.

    Args:
        level: Logging level (logging.DEBUG, logging.INFO, etc.)
        show_time: Show timestamp in console messages
        show_path: Show file path in console messages
        rich_tracebacks: Enable rich formatted tracebacks for exceptions
        console: Optional rich Console instance (creates a stderr console if None)
        log_file: Optional path of a file that receives every record as plain text

    Example:
        >>> from decksync.logging_config import setup_logging
        >>> import logging
        >>> setup_logging(level=logging.DEBUG, log_file="decksync.log")
    """
    global _logging_configured

    if _logging_configured:
        return

    if console is None:
        console = Console(stderr=True)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=console,
            show_time=show_time,
            show_path=show_path,
            rich_tracebacks=rich_tracebacks,
            markup=False,
            log_time_format="[%X]",
        ),
    ]

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=FILE_DATE_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_module_level(module_name: str, level: int) -> None:
    """
    Set logging level for a specific module.

    Args:
        module_name: Full module name (e.g., 'decksync.feedback')
        level: Logging level (logging.DEBUG, logging.INFO, etc.)

    Example:
        >>> set_module_level('decksync.dispatcher', logging.DEBUG)
    """
    logging.getLogger(module_name).setLevel(level)
