"""Logging setup shared by the server and the sync client.

Modules obtain a logger via ``get_logger(__name__)`` instead of printing.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging.

    Parameters
    ----------
    level:
        Optional log level name. If not provided, the ``LOG_LEVEL``
        environment variable is consulted and defaults to ``INFO``.
    """

    level_name = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=_LOG_FORMAT, stream=sys.stdout)


def get_logger(name: str) -> logging.Logger:
    """Return a logger with global configuration applied."""

    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
