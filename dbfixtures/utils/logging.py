"""Logging setup for dbfixtures.

Library modules only create loggers; applications and test suites call
``configure_logging`` once to install a handler.

Usage:
    from dbfixtures.utils.logging import configure_logging

    configure_logging()  # level and format from DBFIXTURES_LOG_* variables
    configure_logging(level="DEBUG", json_logs=True)
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Optional

from dbfixtures.core.config import config

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    force: bool = False,
) -> None:
    """Configure the ``dbfixtures`` logger hierarchy.

    Args:
        level: Logging level name; defaults to DBFIXTURES_LOG_LEVEL
        json_logs: Emit JSON lines; defaults to DBFIXTURES_LOG_FORMAT == "json"
        force: Also configure the root logger instead of only ``dbfixtures``
    """
    level = (level or config.log_level).upper()
    if json_logs is None:
        json_logs = config.log_format == "json"
    formatter_name = "json" if json_logs else "console"

    logger_config = {"handlers": ["default"], "level": level, "propagate": False}
    dict_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JsonFormatter,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": formatter_name,
                "level": level,
            }
        },
        "loggers": {"dbfixtures": logger_config},
    }
    if force:
        dict_config["root"] = {"handlers": ["default"], "level": level}
        logger_config["propagate"] = True
        logger_config.pop("handlers")

    logging.config.dictConfig(dict_config)


__all__ = ["configure_logging", "JsonFormatter"]
