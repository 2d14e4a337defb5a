# Logging Setup
"""Logging configuration shared by hosts embedding portal_sync."""

import logging
from typing import Optional

from portal_sync.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure root logging for the process.

    Args:
        level: Level name overriding settings.log_level

    Returns:
        The package logger
    """
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
    logger = logging.getLogger("portal_sync")
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger
