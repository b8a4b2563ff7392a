"""Structured logging for the agent fleet.

Every record is one JSON object. Records emitted on behalf of an agent carry
``extra=agent_context(agent_id, ...)`` and are written with a ``context``
field, plus ``agent_id`` lifted to the top level for grepping.
"""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            if "agent_id" in context:
                entry["agent_id"] = context["agent_id"]
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def build_logging_config(log_level: str, log_file: str | None) -> dict:
    """dictConfig mapping: stdout always, rotating file when ``log_file`` is set."""
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": _MAX_LOG_BYTES,
            "backupCount": _LOG_BACKUPS,
            "formatter": "json",
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "fleet.logging_config.JSONFormatter"}},
        "handlers": handlers,
        "root": {"level": log_level.upper(), "handlers": list(handlers)},
    }


def setup_logging(log_level: str | None = None, log_file: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Defaults to the LOG_LEVEL env var, then INFO.
        log_file: Defaults to 04_logs/app.log.
    """
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")
    log_file = log_file or str(DEFAULT_LOG_PATH)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(log_level, log_file))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def agent_context(agent_id: str, **fields) -> dict:
    """Build the ``extra`` mapping that tags a record with an agent."""
    return {"context": {"agent_id": agent_id, **fields}}
