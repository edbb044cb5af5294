"""Logging helpers for the PLC MQTT bridge."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any

import msgspec

from .settings import RuntimeConfig

CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_RESERVED_LOG_KEYS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


def _serialise_value(value: Any) -> Any:
    """Serialise values for JSON logs with strict type handling."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (bytes, bytearray)):
        # Bytes from the source stream are rarely valid UTF-8; log them as hex.
        return f"[{' '.join(f'{b:02X}' for b in value)}]"
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Emit JSON per log line while trimming the shared prefix."""

    PREFIX = "plcbridge."

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

        extras = {
            key: _serialise_value(value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_KEYS and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return msgspec.json.encode(payload).decode("utf-8")


class MaxLevelFilter(logging.Filter):
    """Pass only records strictly below *level*."""

    def __init__(self, level: int | str = logging.WARNING) -> None:
        super().__init__()
        self.level = logging.getLevelName(level) if isinstance(level, str) else level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def console_level(config: RuntimeConfig) -> str:
    if config.quiet:
        return "WARNING"
    if config.verbose:
        return "DEBUG"
    return "INFO"


def configure_logging(config: RuntimeConfig) -> None:
    """Configure root logging based on runtime settings.

    Regular output goes to stdout and warnings/errors to stderr. With a log
    file configured every record is mirrored there as a JSON line,
    independently of ``--quiet``.
    """
    level_name = console_level(config)
    file_level = "DEBUG" if config.verbose else "INFO"

    handlers: dict[str, dict[str, Any]] = {
        "stdout": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "level": level_name,
            "formatter": "console",
            "filters": ["below_warning"],
        },
        "stderr": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "level": "WARNING",
            "formatter": "console",
        },
    }
    if config.log_file:
        handlers["logfile"] = {
            "class": "logging.FileHandler",
            "filename": config.log_file,
            "encoding": "utf-8",
            "level": file_level,
            "formatter": "structured",
        }

    root_level = "DEBUG" if config.verbose else ("INFO" if config.log_file else level_name)

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": CONSOLE_FORMAT,
                },
                "structured": {
                    "()": "plcbridge.config.logging.StructuredLogFormatter",
                },
            },
            "filters": {
                "below_warning": {
                    "()": "plcbridge.config.logging.MaxLevelFilter",
                    "level": logging.WARNING,
                },
            },
            "handlers": handlers,
            "root": {
                "level": root_level,
                "handlers": list(handlers),
            },
            "loggers": {
                # aiomqtt client: warnings only unless --verbose
                "plcbridge.mqtt.client": {
                    "level": "DEBUG" if config.verbose else "WARNING",
                },
            },
        }
    )

    logging.getLogger("plcbridge").debug("Logging configured at level %s", level_name)
