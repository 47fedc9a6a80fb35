"""
Shared logging configuration for the Trust Layer.

Events are rendered as JSON by structlog. Request correlation uses structlog's
contextvars support, so bound values follow asyncio tasks.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

import structlog
from opentelemetry import trace

# Event keys whose values never reach a log sink in clear text.
SENSITIVE_KEYS = frozenset({
    "plaintext",
    "data_key",
    "token",
    "authorization",
    "private_key",
    "secret",
    "signature",
})

REDACTED = "[REDACTED]"


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""
    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            redact_sensitive,
            add_service_context,
            add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger(service_name).setLevel(level)


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    return value


def redact_sensitive(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask sensitive values, including inside nested mappings."""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, Mapping):
            event_dict[key] = _redact(value)
    return event_dict


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Derive ``service`` from a dotted logger name ("trust.validator" -> "trust")."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict.setdefault("service", logger_name.split(".")[0])
    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id != 0:
            event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


@contextmanager
def request_context(request_id: Optional[str] = None, subject: Optional[str] = None) -> Iterator[str]:
    """Bind a request id (generated when absent) and subject for the block."""
    request_id = request_id or str(uuid.uuid4())
    values = {"request_id": request_id}
    if subject:
        values["subject"] = subject
    with structlog.contextvars.bound_contextvars(**values):
        yield request_id


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
