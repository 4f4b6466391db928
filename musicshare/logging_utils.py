"""Centralized logging configuration for the Music Share application."""

from __future__ import annotations

import logging
import os
from logging import Logger
from pathlib import Path
from typing import Iterable, List


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "MUSIC_SHARE_LOG_LEVEL"


def resolve_log_level(default: int = logging.INFO) -> int:
    """Return the level named by ``MUSIC_SHARE_LOG_LEVEL`` or *default*."""

    raw = (os.environ.get(LOG_LEVEL_ENV) or "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def build_handlers(log_file: Path | None = None) -> List[logging.Handler]:
    """Return a stream handler plus a UTF-8 file handler when *log_file* is set."""

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    handlers: List[logging.Handler] = []
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)
    return handlers


def configure_logging(level: int | None = None, *, handlers: Iterable[logging.Handler] | None = None) -> Logger:
    """Configure the root logger, replacing handlers installed by a previous call."""

    logger = logging.getLogger()
    logger.setLevel(resolve_log_level() if level is None else level)

    for existing in list(logger.handlers):
        if getattr(existing, "_music_share", False):
            logger.removeHandler(existing)
            existing.close()

    for handler in handlers if handlers is not None else build_handlers():
        handler._music_share = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger


def get_log_file_path(data_root: Path) -> Path:
    """Return the default path for the application log file."""

    return data_root / "music_share.log"


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "LOG_LEVEL_ENV",
    "build_handlers",
    "configure_logging",
    "get_log_file_path",
    "resolve_log_level",
]
