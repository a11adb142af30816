"""Logging helpers shared by every fx_lens module."""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_LEVEL_ENV = "FX_LENS_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_ROOT_LOGGER: Optional[logging.Logger] = None


def get_logger(name: str = "fx_lens") -> logging.Logger:
    """Return a named logger, configuring the root handler on first use.

    The level defaults to ``INFO`` and can be raised or lowered through the
    ``FX_LENS_LOG_LEVEL`` environment variable (``DEBUG``, ``WARNING``...).
    """
    global _ROOT_LOGGER
    if _ROOT_LOGGER is None:
        level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
        _ROOT_LOGGER = logging.getLogger("fx_lens")
    return logging.getLogger(name)


__all__ = ["get_logger", "LOG_LEVEL_ENV"]
