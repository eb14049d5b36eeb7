"""Structured logging configuration.

JSON-formatted stdout logs with optional request/trace correlation fields.
structlog renders business-operation events; stdlib records share the same
JSON shape through :class:`JsonFormatter`.
"""
from __future__ import annotations

import json
import logging as _logging
import os
import sys
import time
from typing import Any, Dict

import structlog

DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Third-party loggers that drown out application events at INFO
_NOISY_LOGGERS = ("aiosqlite", "passlib", "multipart", "httpx")


class JsonFormatter(_logging.Formatter):
    def format(self, record) -> str:  # noqa: D401 - record is LogRecord
        base: Dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("request_id", "trace_id", "span_id", "user_id"):
            if hasattr(record, attr):
                base[attr] = getattr(record, attr)
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for application startup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    handler = _logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root = _logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel((level or DEFAULT_LEVEL).upper())
    for name in _NOISY_LOGGERS:
        _logging.getLogger(name).setLevel(_logging.WARNING)


def bind_context(logger, **kwargs: Any):
    """Bind contextual attributes to a stdlib logger via ``LoggerAdapter``."""
    if not kwargs:
        return logger
    return _logging.LoggerAdapter(logger, extra=kwargs)


__all__ = ["JsonFormatter", "configure_logging", "bind_context"]
