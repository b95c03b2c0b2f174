"""Logging helpers shared across the analytics pipeline."""
from __future__ import annotations

import logging
import os
from typing import Optional


_LOGGER_CACHE: dict[str, logging.Logger] = {}
_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _level_from_env(default: int) -> int:
    raw_level = os.getenv("COMMGRAPH_LOG_LEVEL")
    if not raw_level:
        return default
    level = logging.getLevelName(raw_level.strip().upper())
    return level if isinstance(level, int) else default


def configure_root_logger(level: int = logging.INFO) -> None:
    """Configure the root logger with a consistent format.

    ``COMMGRAPH_LOG_LEVEL`` overrides *level* when it names a standard level.
    """
    if logging.getLogger().handlers:
        return
    formatter = logging.Formatter(_DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logging.basicConfig(level=_level_from_env(level), handlers=[handler])


def set_log_level(level: str | int) -> None:
    """Change the root level after configuration, e.g. from a CLI flag."""
    configure_root_logger()
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    logging.getLogger().setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Retrieve a configured logger, caching it for reuse."""
    if name is None:
        name = os.getenv("COMMGRAPH_LOGGER_NAME", "commgraph")
    if name not in _LOGGER_CACHE:
        configure_root_logger()
        _LOGGER_CACHE[name] = logging.getLogger(name)
    return _LOGGER_CACHE[name]
