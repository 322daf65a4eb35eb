"""
Logging configuration for the service.
"""

import logging
import sys

from studyhub.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Attach a single stream handler to the ``studyhub`` logger.

    Calling it more than once only updates the level.
    """
    global _configured

    logger = logging.getLogger("studyhub")
    logger.setLevel(getattr(logging, (level or settings.log_level).upper()))

    if _configured:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    _configured = True
    return logger
