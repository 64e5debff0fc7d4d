"""Prometheus metrics for the moderation engine.

Exposes HTTP request metrics plus counters for report filing,
moderation actions, rate-limit rejections and audit write retries.
"""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

REGISTRY = CollectorRegistry()

# Running under gunicorn with several workers
if "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


APP_INFO = Info(
    "moderation_engine_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Moderation Metrics
# ============================================
REPORTS_FILED_TOTAL = Counter(
    "moderation_reports_filed_total",
    "Reports accepted by the engine",
    ["reason"],
    registry=REGISTRY,
)

MODERATION_ACTIONS_TOTAL = Counter(
    "moderation_actions_total",
    "Moderation actions processed, by outcome",
    ["action", "outcome"],
    registry=REGISTRY,
)

RATE_LIMIT_REJECTIONS_TOTAL = Counter(
    "moderation_rate_limit_rejections_total",
    "Requests rejected by a rate limit policy",
    ["policy"],
    registry=REGISTRY,
)

AUDIT_WRITE_RETRIES_TOTAL = Counter(
    "moderation_audit_write_retries_total",
    "Audit log writes that had to be retried",
    registry=REGISTRY,
)


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


def record_action(action: str, outcome: str) -> None:
    """Count a processed moderation action."""
    MODERATION_ACTIONS_TOTAL.labels(action=action, outcome=outcome).inc()


def get_metrics() -> tuple[bytes, str]:
    """Render the registry in Prometheus text format.

    Returns:
        Tuple of (payload, content type)
    """
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
