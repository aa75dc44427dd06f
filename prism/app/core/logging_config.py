"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Coloured console logs for development
    • Request-scoped context (request_id, client_ip, endpoint)

Pipeline code attaches domain fields through ``extra=``; the JSON
formatter lifts the known keys to the top level of each entry:

    logger.info("Disaster created", extra={"disaster_id": 7, "area": "Chennai"})

Usage:
    from prism.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from prism.app.core.config import settings

_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context", default={}
)

# Fields copied from LogRecord.__dict__ into JSON entries when present
EXTRA_FIELDS = (
    "disaster_id",
    "alert_id",
    "area",
    "severity",
    "recipient_count",
    "channel",
    "subscriber_count",
    "duration_ms",
    "status_code",
    "endpoint",
)


def set_request_context(**kwargs: Any) -> None:
    """Set request-scoped log context (call from middleware)."""
    _request_context.set(kwargs)


def get_request_context() -> Dict[str, Any]:
    return _request_context.get()


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": settings.APP_NAME,
            "env": settings.ENVIRONMENT,
            "logger": record.name,
            "msg": record.getMessage(),
            **get_request_context(),
            **_extras(record),
        }

        if record.exc_info and record.exc_info[1]:
            entry["exc_type"] = type(record.exc_info[1]).__name__
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Coloured human-readable format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ts = self.formatTime(record, "%H:%M:%S")

        request_id = get_request_context().get("request_id")
        tag = f" [{request_id[:8]}]" if request_id else ""
        # domain extras trail the message, e.g. "disaster_id=7 area=Chennai"
        extras = " ".join(
            f"{k}={v}" for k, v in _extras(record).items()
            if k not in ("endpoint", "status_code", "duration_ms")
        )

        line = f"{color}{ts} {record.levelname:8s}{self.RESET}{tag} {record.name}: {record.getMessage()}"
        if extras:
            line += f"  \033[2m{extras}{self.RESET}"
        if record.exc_info and record.exc_info[1]:
            line += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return line


def setup_logging() -> None:
    """Configure the root logger based on environment."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.is_production else PrettyFormatter())
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "twilio.http_client", "websockets"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger — call once per module."""
    return logging.getLogger(name)
