"""Logging configuration for the application."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from farmstall.config import Settings

LOGGER_NAME = "farmstall"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
MAX_BYTES = 1_000_000
BACKUP_COUNT = 3


def configure_logging(settings: Settings, level: Optional[str] = None) -> logging.Logger:
    """
    Attach console and rotating file handlers to the package logger.

    Streamlit reruns page scripts on every interaction, so this is called
    many times per process; handlers are only installed once.

    Args:
        settings: Resolved settings (log file location and default level)
        level: Optional level name overriding ``settings.log_level``

    Returns:
        The ``farmstall`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    logger.setLevel(log_level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    settings.log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        settings.log_file,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
