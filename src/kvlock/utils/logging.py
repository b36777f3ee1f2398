"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from rich.logging import RichHandler


_FALSE_VALUES = {"0", "false", "no", "off"}


def _rich_enabled() -> bool:
    raw = os.getenv("KVLOCK_RICH_LOGS", "").strip().lower()
    return raw not in _FALSE_VALUES


def _default_level() -> int:
    level = logging.getLevelName(os.getenv("KVLOCK_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, level: Optional[int] = None, *, rich: Optional[bool] = None) -> logging.Logger:
    """Configure and return a logger.

    Level defaults to ``KVLOCK_LOG_LEVEL``; ``KVLOCK_RICH_LOGS=0`` switches to
    a plain stdout handler.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = _default_level() if level is None else level
    if rich is None:
        rich = _rich_enabled()
    logger.setLevel(level)

    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False
    return logger
