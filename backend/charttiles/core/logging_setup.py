"""Logging configuration for the tile server and conversion pipeline."""

from __future__ import annotations

import json
import logging
from logging import config as logging_config

_STANDARD_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Structured JSON formatter, one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(*, level: str = "INFO", json_logs: bool = False) -> None:
    """Configure the root logger with a console handler.

    Args:
        level: Logging level name, case-insensitive.
        json_logs: Emit JSON lines instead of the plain pipe-separated format.
    """
    formatters: dict[str, dict[str, object]] = {
        "standard": {"format": _STANDARD_FORMAT, "datefmt": _DATE_FORMAT},
    }
    if json_logs:
        formatters["json"] = {"()": JSONFormatter, "datefmt": _DATE_FORMAT}

    logging_config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "standard",
                },
            },
            "root": {"handlers": ["console"], "level": level.upper()},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Return a module-scoped logger."""
    return logging.getLogger(name)
