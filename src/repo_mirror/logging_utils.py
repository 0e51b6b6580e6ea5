from __future__ import annotations
"""Structured logging utilities."""

import json
import logging
from datetime import datetime, timezone


_STANDARD_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}

_NOISY_LOGGERS = ("uvicorn.access",)


class JsonLogFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def __init__(self, *, utc: bool = True) -> None:
        super().__init__()
        self._utc = utc

    def format(self, record: logging.LogRecord) -> str:
        if self._utc:
            timestamp = datetime.fromtimestamp(record.created, timezone.utc)
        else:
            timestamp = datetime.fromtimestamp(record.created).astimezone()

        payload: dict[str, object] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", *, utc: bool = True) -> None:
    """Configure root logger with JSON structured output.

    Access logs of the HTTP server are only kept at DEBUG level.
    """
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter(utc=utc))
    root.addHandler(handler)
    root.setLevel(level.upper())

    noisy_level = logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
