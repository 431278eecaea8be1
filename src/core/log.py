# src/core/log.py
"""Logging setup: stderr always, plus a rotating file log when a directory is given."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER = "sitemirror"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "(%Y-%m-%d %H:%M:%S)"


def debug_enabled() -> bool:
    return os.getenv("SITEMIRROR_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(debug: bool = False, log_dir: Path | None = None) -> logging.Logger:
    """
    Configure the `sitemirror` logger tree. Safe to call more than once; handlers are
    only added the first time.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if (debug or debug_enabled()) else logging.INFO)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    if not any(getattr(h, "_sitemirror", False) for h in logger.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        stream._sitemirror = True  # type: ignore[attr-defined]
        logger.addHandler(stream)

    if log_dir is not None and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(log_dir / "sitemirror.log", maxBytes=1_000_000, backupCount=3, encoding="utf-8")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        except OSError as e:
            # stderr logging keeps working without the file
            logger.warning("file logging disabled: %s", e)

    return logger


__all__ = ["ROOT_LOGGER", "configure_logging", "debug_enabled"]
