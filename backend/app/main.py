"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.metrics import get_metrics, set_app_info
from app.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
    TracingMiddleware,
)
from app.core.redis import close_redis
from app.core.tracing import setup_tracing, shutdown_tracing
from app.modules.moderation import content_router, reports_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()
    shutdown_tracing()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Content Moderation & Reporting Engine

Ingests user reports against articles, forum topics and replies, and job
postings; serves the moderation queue; applies single and bulk moderation
decisions with an append-only audit trail.

### Authentication

All endpoints except `/health` and `/metrics` require a JWT Bearer token.
Queue, report management and moderation actions need a moderator role.

```
Authorization: Bearer <access_token>
```
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check and metrics endpoints",
        },
        {
            "name": "reports",
            "description": "Report filing, listing, resolution and statistics",
        },
        {
            "name": "moderation",
            "description": "Moderation queue, single and bulk actions, audit history",
        },
    ],
    lifespan=lifespan,
)

# Set up logging with correlation IDs
setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON_FORMAT,
    include_stack_trace=True,
)

# Set up distributed tracing
setup_tracing(
    service_name=settings.PROJECT_NAME,
    service_version=settings.VERSION,
    environment=settings.ENVIRONMENT,
    enable_console_export=settings.TRACING_CONSOLE_EXPORT,
)

# Set application info for metrics
set_app_info(version=settings.VERSION, environment=settings.ENVIRONMENT)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Monitoring middleware; the last added runs first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Serve malformed requests as 400 with the engine's error shape."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "error": "validation_failed",
                "message": "Request validation failed",
                "errors": jsonable_encoder(exc.errors()),
            }
        },
    )


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        dict: Health status with "healthy" or "unhealthy" value.
    """
    return {"status": "healthy"}


@app.get("/metrics", tags=["health"], include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    payload, content_type = get_metrics()
    return Response(content=payload, media_type=content_type)


# Include routers
app.include_router(reports_router, prefix=settings.API_V1_PREFIX)
app.include_router(content_router, prefix=settings.API_V1_PREFIX)
