"""FastAPI middleware for monitoring, tracing, and logging."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.logging import clear_correlation_id, get_correlation_id, set_correlation_id
from app.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)
from app.core.tracing import add_span_attributes, create_span, record_exception

_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)
# /content/<type>/<id>/... carries free-form content ids
_CONTENT_ID_RE = re.compile(r"(/content/(?:article|topic|reply|job))/[^/]+")


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collect request count, duration and in-flight gauges."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = self._normalize_path(request.url.path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=path).inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=path).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=path, status_code=str(status_code)
            ).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=path).dec()

    @staticmethod
    def _normalize_path(path: str) -> str:
        """Replace ids with placeholders to bound label cardinality."""
        path = _UUID_RE.sub("{id}", path)
        path = _CONTENT_ID_RE.sub(r"\1/{id}", path)
        return re.sub(r"/\d+(?=/|$)", "/{id}", path)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagate or create the X-Correlation-ID for each request."""

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.CORRELATION_ID_HEADER, str(uuid.uuid4()))
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[self.CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class TracingMiddleware(BaseHTTPMiddleware):
    """Wrap each request in a server span."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path

        with create_span(
            f"{method} {path}",
            attributes={
                "http.method": method,
                "http.route": path,
                "http.scheme": request.url.scheme,
                "correlation_id": get_correlation_id(),
            },
            kind=trace.SpanKind.SERVER,
        ):
            try:
                response = await call_next(request)
            except Exception as e:
                record_exception(e)
                raise
            add_span_attributes({"http.status_code": response.status_code})
            return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log request start, completion and failure."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("app.requests")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        self.logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": request.url.path,
                "query": str(request.query_params),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        self.logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return response


__all__ = [
    "MetricsMiddleware",
    "CorrelationIdMiddleware",
    "TracingMiddleware",
    "RequestLoggingMiddleware",
]
