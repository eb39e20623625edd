"""Logging setup for the tracker backend.

Every module logs through a child of the ``dsa_tracker`` logger
(``dsa_tracker.cache``, ``dsa_tracker.api`` ...), so one call to
:func:`setup_logging` at process start routes all of them.
"""

import logging
import sys
from pathlib import Path

from app.core.config import settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "dsa_tracker"


def setup_logging(level: str | None = None, log_file: str | None = None) -> logging.Logger:
    """Initialise the ``dsa_tracker`` logger.

    Args:
        level: Log level name; defaults to ``settings.log_level``.
        log_file: Optional file path for a detailed DEBUG log; defaults
            to ``settings.log_file``.

    Returns:
        The configured project logger.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls (e.g. tests, reloads)
    if root_logger.handlers:
        return root_logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel((level or settings.log_level).upper())
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    root_logger.addHandler(console_handler)

    target = log_file or settings.log_file
    if target:
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT))
        root_logger.addHandler(file_handler)

    root_logger.info("Logging initialised (level=%s, file=%s)", console_handler.level, target or "-")
    return root_logger
