"""Logging setup - one configured logger shared by every module"""

import logging
import sys
from typing import Optional

from config import settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str = "clipweave", level: Optional[str] = None) -> logging.Logger:
    """
    Create (or fetch) the application logger.

    Handlers are attached only once so repeated imports do not duplicate
    output lines.

    Args:
        name: Logger name
        level: Log level name, defaults to settings.LOG_LEVEL

    Returns:
        Configured logger instance
    """
    log = logging.getLogger(name)

    if not log.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)

    log.setLevel(level or settings.LOG_LEVEL)
    return log


logger = setup_logger()
