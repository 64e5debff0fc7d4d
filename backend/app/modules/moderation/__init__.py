"""Content moderation and reporting engine."""

from app.modules.moderation.action_processor import (
    BulkModerationResult,
    ModerationAction,
    ModerationActionProcessor,
    ModerationResult,
)
from app.modules.moderation.audit import AuditLog
from app.modules.moderation.exceptions import (
    AuditWriteFailed,
    Conflict,
    ContentNotFound,
    InvalidStateTransition,
    ModerationError,
    RateLimited,
    ReportNotFound,
    StorageUnavailable,
    Unauthorized,
    ValidationFailed,
)
from app.modules.moderation.models import (
    ContentRef,
    ContentReport,
    ContentStatus,
    ContentType,
    ModeratedContent,
    ModerationActionType,
    ModerationAuditEntry,
    ReportReason,
    ReportStatus,
)
from app.modules.moderation.queue_service import ModerationQueueService
from app.modules.moderation.rate_limiter import RateLimiter, RateLimitPolicy
from app.modules.moderation.report_service import ReportService
from app.modules.moderation.router import content_router, reports_router
from app.modules.moderation.spam import SpamScoreService

__all__ = [
    # Models
    "ContentRef",
    "ContentReport",
    "ContentStatus",
    "ContentType",
    "ModeratedContent",
    "ModerationActionType",
    "ModerationAuditEntry",
    "ReportReason",
    "ReportStatus",
    # Services
    "AuditLog",
    "ModerationAction",
    "ModerationActionProcessor",
    "ModerationQueueService",
    "ModerationResult",
    "BulkModerationResult",
    "RateLimiter",
    "RateLimitPolicy",
    "ReportService",
    "SpamScoreService",
    # Errors
    "ModerationError",
    "ValidationFailed",
    "Unauthorized",
    "ContentNotFound",
    "ReportNotFound",
    "InvalidStateTransition",
    "Conflict",
    "RateLimited",
    "StorageUnavailable",
    "AuditWriteFailed",
    # Routers
    "reports_router",
    "content_router",
]
