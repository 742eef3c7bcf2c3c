"""Process-wide logger shared by the cart engine."""
from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the `cartengine` logger once and return it."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log = logging.getLogger("cartengine")
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    log.setLevel(getattr(logging, level_name, logging.INFO))
    return log


logger = setup_logging()

__all__ = ["logger", "setup_logging"]
