"""Central logging configuration."""
from __future__ import annotations

import logging
from logging.config import dictConfig

from bouncehook.core.config import Settings


def build_logging_config(settings: Settings) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
            }
        },
        "root": {
            "handlers": ["console"],
            "level": "DEBUG" if settings.environment == "development" else "INFO",
        },
    }


def configure_logging(settings: Settings) -> None:
    """Apply the logging configuration once at application startup."""

    dictConfig(build_logging_config(settings))


logger = logging.getLogger("bouncehook")
