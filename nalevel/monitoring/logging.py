"""Logging setup for the onboarding service."""

from __future__ import annotations

import logging

from nalevel.config.settings import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Client libraries that log every request or statement at INFO.
CHATTY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def configure_logging(settings: Settings | None = None) -> int:
    """Set up the root logger from ``settings`` and return the level in use."""

    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    library_level = level if level <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    return level
