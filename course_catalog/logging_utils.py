"""Centralized logging configuration for the course catalog."""

from __future__ import annotations

import logging
import os
from logging import Logger
from pathlib import Path
from typing import Iterable, List


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "COURSE_CATALOG_LOG_LEVEL"


def resolve_log_level(default: int = logging.INFO) -> int:
    """Return the level named by ``COURSE_CATALOG_LOG_LEVEL`` or *default*."""

    raw = (os.environ.get(LOG_LEVEL_ENV) or "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def build_handlers(storage_root: Path) -> List[logging.Handler]:
    """Return a file handler below *storage_root* and a console handler."""

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    file_handler = logging.FileHandler(get_log_file_path(storage_root), encoding="utf-8")
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    return [file_handler, stream_handler]


def configure_logging(level: int | None = None, *, handlers: Iterable[logging.Handler] | None = None) -> Logger:
    """Configure the root logger; without *handlers* a console handler is added."""

    logger = logging.getLogger()
    logger.setLevel(resolve_log_level() if level is None else level)

    if handlers is None:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        handlers = [stream_handler]
    for handler in handlers:
        logger.addHandler(handler)

    return logger


def get_log_file_path(storage_root: Path) -> Path:
    """Return the default path for the catalog log file."""

    return storage_root / "course_catalog.log"


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "LOG_LEVEL_ENV",
    "build_handlers",
    "configure_logging",
    "get_log_file_path",
    "resolve_log_level",
]
