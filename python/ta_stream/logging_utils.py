"""Loguru configuration helpers.

Library modules log through ``from loguru import logger`` and never add
sinks themselves; applications call ``setup_logging`` once.
"""

from __future__ import annotations

import sys

from loguru import logger

from .config import LogConfig

_SINKS = {"stderr": sys.stderr, "stdout": sys.stdout}


def setup_logging(cfg: LogConfig = LogConfig(), *, force: bool = False) -> None:
    """Replace loguru's default handler with the configured sink."""
    if not force and getattr(setup_logging, "_configured", False):
        return

    logger.remove()
    sink = _SINKS.get(cfg.sink.lower(), cfg.sink)
    logger.add(
        sink,
        level=cfg.level.upper(),
        format=cfg.fmt,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )
    setup_logging._configured = True  # type: ignore[attr-defined]
    logger.debug("logging configured (level={}, sink={})", cfg.level.upper(), cfg.sink)
