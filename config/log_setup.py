# Path: config/log_setup.py
# Purpose: Configure application-wide logging.
# Layer: config.
# Details: Installs a single console handler on the root logger; modules log through getLogger(__name__).

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """Configure the root logger once and return it.

    Calling this again only adjusts the level, so scripts and tests can both use it.
    """

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    if not any(getattr(handler, "_lookalike", False) for handler in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._lookalike = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)

    return root_logger


__all__ = ["setup_logging"]
