"""Regraft CLI logging infrastructure.

All regraft modules log through children of the ``regraft`` logger.  The
console gets Rich-formatted records at the requested level; an optional
log file always records DEBUG, which includes every external command run
during the upgrade.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "regraft"
FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _console_handler(console: Console, level: int) -> RichHandler:
    # Messages carry branch names and file paths; never interpret them as markup.
    handler = RichHandler(console=console, show_time=True, show_path=False, markup=False)
    handler.setLevel(level)
    return handler


def _file_handler(log_file: Path) -> logging.FileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(log_file), encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``regraft`` logger.

    Safe to call more than once; previous handlers are closed and replaced.

    Parameters
    ----------
    level:
        Console level name.  ``--verbose`` maps to ``"DEBUG"`` and
        ``--silent`` to ``"WARNING"``.
    log_file:
        Optional log file, always written at DEBUG.
    console:
        Rich console for the console handler.  Defaults to stderr.

    Returns
    -------
    logging.Logger
        The configured ``regraft`` logger.
    """
    console_level = _level(level)
    logger = logging.getLogger(LOGGER_NAME)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_console_handler(console or Console(stderr=True), console_level))
    if log_file is not None:
        logger.addHandler(_file_handler(log_file))
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(console_level)
    return logger
