"""
playlister.core.logging
~~~~~~~~~~~~~~~~~~~~~~~

Process-wide logging setup. Modules get their logger through
``get_logger(__name__)``.
"""
from __future__ import annotations

import logging
import sys

_LOG_FORMAT: str = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("httpcore", "httpx", "engineio.server", "socketio.server")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger. Call once at startup."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
