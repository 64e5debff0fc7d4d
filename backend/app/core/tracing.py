"""OpenTelemetry tracing for request handling and moderation actions."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from opentelemetry import trace
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

_tracer: Optional[trace.Tracer] = None
_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str,
    service_version: str,
    environment: str = "development",
    enable_console_export: bool = False,
) -> trace.Tracer:
    """Set up the global tracer provider.

    Args:
        service_name: Name of the service
        service_version: Version of the service
        environment: Deployment environment
        enable_console_export: Print finished spans to stdout

    Returns:
        Configured tracer instance
    """
    global _tracer, _provider

    resource = Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        "deployment.environment": environment,
    })
    _provider = TracerProvider(resource=resource)

    if enable_console_export:
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_provider)
    set_global_textmap(TraceContextTextMapPropagator())

    _tracer = trace.get_tracer(service_name, service_version)
    logger.info("Tracing initialized for %s v%s", service_name, service_version)
    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the configured tracer, or a no-op tracer before setup."""
    if _tracer is None:
        return trace.get_tracer(__name__)
    return _tracer


def get_trace_id() -> Optional[str]:
    """Get the current trace ID as a hex string."""
    context = trace.get_current_span().get_span_context()
    if context.is_valid:
        return format(context.trace_id, "032x")
    return None


def get_span_id() -> Optional[str]:
    """Get the current span ID as a hex string."""
    context = trace.get_current_span().get_span_context()
    if context.is_valid:
        return format(context.span_id, "016x")
    return None


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
) -> Iterator[Span]:
    """Create a span as a context manager.

    Args:
        name: Span name
        attributes: Optional span attributes
        kind: Span kind

    Yields:
        The created span
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=attributes or {},
    ) as span:
        yield span


def add_span_attributes(attributes: dict) -> None:
    """Add attributes to the current span."""
    span = trace.get_current_span()
    for key, value in attributes.items():
        span.set_attribute(key, value)


def record_exception(exception: BaseException, attributes: Optional[dict] = None) -> None:
    """Record an exception on the current span and mark it failed."""
    span = trace.get_current_span()
    span.record_exception(exception, attributes=attributes)
    span.set_status(Status(StatusCode.ERROR, str(exception)))


def shutdown_tracing() -> None:
    """Shutdown the tracer provider and flush pending spans."""
    if _provider:
        _provider.shutdown()
