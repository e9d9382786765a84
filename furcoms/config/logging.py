"""Logging helpers for the FurComs bridge daemon."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any

import msgspec

from .model import RuntimeConfig

SYSLOG_SOCKET = Path("/dev/log")
LOG_STREAM_ENV = "FURCOMS_LOG_STREAM"


class StructuredLogFormatter(logging.Formatter):
    """Emit JSON per log line while trimming the shared prefix."""

    PREFIX = "furcoms."

    def format(self, record: logging.LogRecord) -> str:
        logger_name = record.name
        if logger_name.startswith(self.PREFIX):
            logger_name = logger_name[len(self.PREFIX) :]

        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": logger_name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return msgspec.json.encode(payload).decode("utf-8")


def _build_handler() -> Handler:
    if os.environ.get(LOG_STREAM_ENV) or not SYSLOG_SOCKET.exists():
        return logging.StreamHandler()

    syslog_handler = SysLogHandler(
        address=str(SYSLOG_SOCKET),
        facility=SysLogHandler.LOG_DAEMON,
    )
    syslog_handler.ident = "furcoms "
    return syslog_handler


def configure_logging(config: RuntimeConfig) -> None:
    """Configure root logging based on runtime settings."""

    level_name = "DEBUG" if config.debug_logging else "INFO"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": "furcoms.config.logging.StructuredLogFormatter",
                }
            },
            "handlers": {
                "furcoms": {
                    "()": _build_handler,
                    "level": level_name,
                    "formatter": "structured",
                }
            },
            "root": {
                "level": level_name,
                "handlers": ["furcoms"],
            },
        }
    )

    logging.getLogger("furcoms").info("Logging configured at level %s", level_name)
