"""Logging for the curlew service.

One stdout handler on the root logger; uvicorn's loggers share it. The level
comes from ``CURLEW_LOG_LEVEL`` (default INFO). SQL echo stays at WARNING
unless the level is DEBUG.
"""
from __future__ import annotations
import logging
import os
from logging.config import dictConfig
from typing import Any, Dict

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _level() -> str:
    name = (os.environ.get("CURLEW_LOG_LEVEL") or "INFO").strip().upper()
    return name if name in _LEVELS else "INFO"


def build_dict_config(level: str) -> Dict[str, Any]:
    sql_level = "INFO" if level == "DEBUG" else "WARNING"
    shared = {"handlers": ["console"], "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "uvicorn": {"level": level, **shared},
            "uvicorn.error": {"level": level, **shared},
            # request lines are noise for a desktop shell polling /events
            "uvicorn.access": {"level": "WARNING", **shared},
            "sqlalchemy.engine": {"level": sql_level},
        },
    }


def configure_logging() -> None:
    """Install the stdout handler unless the root logger already has one."""
    if logging.getLogger().handlers:
        return
    dictConfig(build_dict_config(_level()))
