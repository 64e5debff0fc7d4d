"""Structured logging with correlation IDs.

Every log line is a JSON object carrying the request correlation ID and,
when a span is active, the trace and span IDs.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.tracing import get_span_id, get_trace_id

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes present on every LogRecord; anything else was passed via ``extra``.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName", "correlation_id",
})


def get_correlation_id() -> str:
    """Get the current correlation ID or generate a new one."""
    cid = correlation_id_var.get()
    if cid is None:
        trace_id = get_trace_id()
        if trace_id:
            return trace_id
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Clear the correlation ID from the current context."""
    correlation_id_var.set(None)


class StructuredFormatter(logging.Formatter):
    """JSON log formatter with correlation ID support."""

    def __init__(self, include_stack_trace: bool = True):
        super().__init__()
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        trace_id = get_trace_id()
        if trace_id:
            log_data["trace_id"] = trace_id
            log_data["span_id"] = get_span_id()

        if record.exc_info and self.include_stack_trace:
            exc_type, exc_value, exc_tb = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack_trace": traceback.format_exception(exc_type, exc_value, exc_tb) if exc_tb else None,
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation ID to all records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Set up application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging
        include_stack_trace: Include stack traces in error logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.addFilter(CorrelationIdFilter())

    if json_format:
        formatter: logging.Formatter = StructuredFormatter(include_stack_trace=include_stack_trace)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(correlation_id)s] - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with correlation ID and optional exception."""
    extra["correlation_id"] = get_correlation_id()
    if exception:
        logger.error(message, exc_info=exception, extra=extra)
    else:
        logger.error(message, extra=extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    """Log a warning with correlation ID."""
    extra["correlation_id"] = get_correlation_id()
    logger.warning(message, extra=extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    """Log info with correlation ID."""
    extra["correlation_id"] = get_correlation_id()
    logger.info(message, extra=extra)
