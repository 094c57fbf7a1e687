"""Logging setup for the fee engine service."""

import logging
import logging.config
from typing import Any, Dict, Optional

from fee_engine.core.config import settings

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_logging_config(level: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
            },
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {
            "fee_engine": {"level": level},
            "httpx": {"level": "WARNING"},
        },
    }


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the fee_engine logger tree. Falls back to INFO for unknown level names."""
    resolved = (level or settings.log_level or "INFO").upper()
    if resolved not in _LEVELS:
        resolved = "INFO"
    logging.config.dictConfig(build_logging_config(resolved))
