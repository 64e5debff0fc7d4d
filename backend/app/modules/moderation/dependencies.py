"""FastAPI dependencies wiring the moderation services.

``STORAGE_BACKEND=sql`` builds request-scoped repositories on the request
session; ``memory`` shares one set of in-process stores. The rate limiter
counters live in Redis unless ``RATE_LIMIT_BACKEND=memory``.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_session
from app.core.redis import redis_client
from app.modules.auth.actor import Authorizer
from app.modules.auth.dependencies import get_authorizer
from app.modules.moderation.action_processor import ModerationActionProcessor
from app.modules.moderation.audit import AuditLog
from app.modules.moderation.content_source import ContentSource, HttpContentSource
from app.modules.moderation.memory import (
    InMemoryAuditStore,
    InMemoryContentStore,
    InMemoryReportStore,
    StaticContentSource,
)
from app.modules.moderation.notifications import (
    CeleryNotificationDispatcher,
    NotificationDispatcher,
)
from app.modules.moderation.queue_service import ModerationQueueService
from app.modules.moderation.rate_limiter import (
    InMemoryCounterStore,
    RateLimiter,
    RedisCounterStore,
)
from app.modules.moderation.report_service import ReportService
from app.modules.moderation.repository import (
    AuditRepository,
    AuditStore,
    ContentRepository,
    ContentStore,
    ReportRepository,
    ReportStore,
)
from app.modules.moderation.spam import SpamScoreService


@lru_cache
def _memory_stores() -> tuple[InMemoryContentStore, InMemoryReportStore, InMemoryAuditStore]:
    return InMemoryContentStore(), InMemoryReportStore(), InMemoryAuditStore()


def _use_memory_stores() -> bool:
    return settings.STORAGE_BACKEND == "memory"


def get_content_store(session: AsyncSession = Depends(get_session)) -> ContentStore:
    if _use_memory_stores():
        return _memory_stores()[0]
    return ContentRepository(session)


def get_report_store(session: AsyncSession = Depends(get_session)) -> ReportStore:
    if _use_memory_stores():
        return _memory_stores()[1]
    return ReportRepository(session)


def get_audit_store(session: AsyncSession = Depends(get_session)) -> AuditStore:
    if _use_memory_stores():
        return _memory_stores()[2]
    return AuditRepository(session)


def get_audit_log(store: AuditStore = Depends(get_audit_store)) -> AuditLog:
    return AuditLog(store)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    if settings.RATE_LIMIT_BACKEND == "memory":
        return RateLimiter(InMemoryCounterStore())
    return RateLimiter(RedisCounterStore(redis_client))


@lru_cache
def get_content_source() -> ContentSource:
    if settings.CONTENT_SERVICE_URL:
        return HttpContentSource(
            settings.CONTENT_SERVICE_URL,
            timeout=settings.CONTENT_SERVICE_TIMEOUT_SECONDS,
        )
    return StaticContentSource()


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return CeleryNotificationDispatcher()


def get_report_service(
    content_store: ContentStore = Depends(get_content_store),
    report_store: ReportStore = Depends(get_report_store),
    audit_log: AuditLog = Depends(get_audit_log),
    content_source: ContentSource = Depends(get_content_source),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    authorizer: Authorizer = Depends(get_authorizer),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ReportService:
    return ReportService(
        content_store=content_store,
        report_store=report_store,
        content_source=content_source,
        audit_log=audit_log,
        rate_limiter=rate_limiter,
        authorizer=authorizer,
        dispatcher=dispatcher,
    )


def get_queue_service(
    content_store: ContentStore = Depends(get_content_store),
    authorizer: Authorizer = Depends(get_authorizer),
) -> ModerationQueueService:
    return ModerationQueueService(content_store, authorizer)


def get_action_processor(
    content_store: ContentStore = Depends(get_content_store),
    report_store: ReportStore = Depends(get_report_store),
    audit_log: AuditLog = Depends(get_audit_log),
    content_source: ContentSource = Depends(get_content_source),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    authorizer: Authorizer = Depends(get_authorizer),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ModerationActionProcessor:
    return ModerationActionProcessor(
        content_store=content_store,
        report_store=report_store,
        content_source=content_source,
        audit_log=audit_log,
        rate_limiter=rate_limiter,
        authorizer=authorizer,
        dispatcher=dispatcher,
    )


def get_spam_service(
    content_store: ContentStore = Depends(get_content_store),
    audit_log: AuditLog = Depends(get_audit_log),
    content_source: ContentSource = Depends(get_content_source),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    authorizer: Authorizer = Depends(get_authorizer),
) -> SpamScoreService:
    return SpamScoreService(content_store, content_source, audit_log, authorizer, rate_limiter)
