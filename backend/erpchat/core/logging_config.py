"""
Logging Configuration
Sets up structured logging with request context and OpenTelemetry correlation
"""

from __future__ import annotations

import logging
import logging.config
import os
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional, Sequence

import structlog
from opentelemetry import trace

from erpchat.core.config import settings


# Per-question context (async-safe)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_ref_var: ContextVar[Optional[str]] = ContextVar("user_ref", default=None)
scope_var: ContextVar[Optional[str]] = ContextVar("scope", default=None)


def _sanitize_string(value: str) -> str:
    """Drop characters the ASCII log sinks cannot encode."""
    return value.encode("ascii", "ignore").decode("ascii")


class AsciiSanitizingFilter(logging.Filter):
    """Ensure log records only emit ASCII-friendly text."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _sanitize_string(record.msg)
        if record.args:
            record.args = tuple(
                _sanitize_string(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class RequestContextFilter(logging.Filter):
    """Copy the current request context onto stdlib log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.user_ref = user_ref_var.get() or "-"
        return True


def bind_request_context(
    user_ref: Optional[str] = None,
    scope: Optional[Sequence[str]] = None,
    request_id: Optional[str] = None
) -> str:
    """
    Bind logging context for one question.

    Returns:
        The request id in effect
    """
    rid = request_id or uuid.uuid4().hex[:12]
    request_id_var.set(rid)
    user_ref_var.set(user_ref)
    scope_var.set(", ".join(scope) if scope else None)
    return rid


def clear_request_context() -> None:
    """Clear logging context (call at request end)"""
    request_id_var.set(None)
    user_ref_var.set(None)
    scope_var.set(None)


def add_request_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor adding request id, caller and scope"""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    user_ref = user_ref_var.get()
    if user_ref:
        event_dict["user_ref"] = user_ref
    scope = scope_var.get()
    if scope:
        event_dict["scope"] = scope
    return event_dict


def _add_trace_context(logger, method_name, event_dict):
    """
    Add OpenTelemetry trace context to log records
    """
    span = trace.get_current_span()
    if span.is_recording():
        span_context = span.get_span_context()
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def build_logging_config(log_level: str, log_file: str, json_console: bool) -> Dict[str, Any]:
    """Build the dictConfig used by setup_logging"""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "ascii_sanitizer": {
                "()": "erpchat.core.logging_config.AsciiSanitizingFilter",
            },
            "request_context": {
                "()": "erpchat.core.logging_config.RequestContextFilter",
            },
        },
        "formatters": {
            "json": {
                "format": "%(asctime)s %(name)s %(levelname)s %(request_id)s %(user_ref)s %(message)s",
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter"
            },
            "console": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if json_console else "console",
                "stream": sys.stdout,
                "filters": ["request_context", "ascii_sanitizer"],
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "json",
                "filename": log_file,
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5,
                "filters": ["request_context", "ascii_sanitizer"],
            }
        },
        "loggers": {
            "": {
                "level": log_level,
                "handlers": ["console", "file"],
                "propagate": False
            },
            # aiomysql and httpx are chatty at INFO
            "aiomysql": {
                "level": "WARNING",
                "handlers": ["file"],
                "propagate": False
            },
            "httpx": {
                "level": "WARNING",
                "handlers": ["file"],
                "propagate": False
            },
            "httpcore": {
                "level": "WARNING",
                "handlers": ["file"],
                "propagate": False
            },
            "asyncio": {
                "level": "WARNING",
                "handlers": ["file"],
                "propagate": False
            }
        }
    }


def setup_logging() -> None:
    """
    Configure structured logging with request context and trace correlation
    """
    if settings.is_development:
        renderer = structlog.processors.KeyValueRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            add_request_context,
            _add_trace_context,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    log_dir = os.path.dirname(settings.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(
            log_level=settings.log_level,
            log_file=settings.log_file,
            json_console=not settings.is_development,
        )
    )

    logger = logging.getLogger(__name__)
    logger.info("[OK] Logging configured - Level: %s", settings.log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured structlog logger

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)
