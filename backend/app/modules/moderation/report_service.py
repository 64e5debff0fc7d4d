"""Report ingestion and report management.

Filing a report: validate input -> rate limit the reporter -> resolve the
content item -> store the report -> bump the item's report count
atomically -> optionally auto-hide -> emit ``report.filed``.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.core.config import settings
from app.core.logging import log_info
from app.core.metrics import REPORTS_FILED_TOTAL
from app.core.tracing import create_span
from app.modules.auth.actor import Actor, Authorizer
from app.modules.moderation.access import ensure_moderator
from app.modules.moderation.audit import AuditLog, build_entry
from app.modules.moderation.content_source import ContentSource, track_content
from app.modules.moderation.exceptions import (
    InvalidStateTransition,
    ReportNotFound,
    ValidationFailed,
)
from app.modules.moderation.filters import ReportQuery, parse_enum
from app.modules.moderation.models import (
    SYSTEM_ACTOR_ID,
    AuditAction,
    ContentRef,
    ContentReport,
    ContentStatus,
    ContentType,
    ModeratedContent,
    ReportReason,
    ReportResolution,
    ReportStatus,
)
from app.modules.moderation.notifications import (
    EventType,
    ModerationEvent,
    NotificationDispatcher,
    notify,
)
from app.modules.moderation.rate_limiter import RateLimiter, moderation_policy, report_policy
from app.modules.moderation.repository import ContentStore, ReportStore
from app.modules.moderation.state_machine import is_awaiting_decision

logger = logging.getLogger(__name__)


class ResolutionStatus:
    """Values accepted when a moderator resolves a single report."""
    RESOLVED_VIOLATION = "resolved_violation"
    RESOLVED_NO_ACTION = "resolved_no_action"
    DISMISSED = "dismissed"


# resolution status -> (stored status, stored resolution)
RESOLUTION_MAP: dict[str, tuple[ReportStatus, Optional[ReportResolution]]] = {
    ResolutionStatus.RESOLVED_VIOLATION: (ReportStatus.RESOLVED, ReportResolution.VIOLATION),
    ResolutionStatus.RESOLVED_NO_ACTION: (ReportStatus.RESOLVED, ReportResolution.NO_ACTION),
    ResolutionStatus.DISMISSED: (ReportStatus.DISMISSED, None),
}


@dataclass
class ReportDetail:
    """A report with its content and the other reports on the same item."""
    report: ContentReport
    content: Optional[ModeratedContent]
    related_reports: list[ContentReport]
    total_reports: int


def parse_reason(value: str) -> ReportReason:
    if value is None:
        raise ValidationFailed("A report reason is required")
    return parse_enum(ReportReason, value, "report reason")


class ReportService:
    """File, inspect and resolve user reports."""

    def __init__(
        self,
        content_store: ContentStore,
        report_store: ReportStore,
        content_source: ContentSource,
        audit_log: AuditLog,
        rate_limiter: RateLimiter,
        authorizer: Authorizer,
        dispatcher: NotificationDispatcher,
        auto_hide_threshold: Optional[int] = None,
    ):
        self.content_store = content_store
        self.report_store = report_store
        self.content_source = content_source
        self.audit_log = audit_log
        self.rate_limiter = rate_limiter
        self.authorizer = authorizer
        self.dispatcher = dispatcher
        self.auto_hide_threshold = (
            settings.REPORT_AUTO_HIDE_THRESHOLD
            if auto_hide_threshold is None
            else auto_hide_threshold
        )

    def _validate_description(self, description: Optional[str]) -> None:
        if description is None:
            return
        min_length = settings.REPORT_DESCRIPTION_MIN_LENGTH
        max_length = settings.REPORT_DESCRIPTION_MAX_LENGTH
        if not min_length <= len(description) <= max_length:
            raise ValidationFailed(
                f"Description must be between {min_length} and {max_length} characters"
            )

    async def file_report(
        self,
        actor: Actor,
        ref: ContentRef,
        reason: str,
        description: Optional[str] = None,
    ) -> ContentReport:
        """File a report against a content item.

        Repeat reports by the same reporter are accepted and show up as
        related reports.

        Args:
            actor: The reporter
            ref: Reported content item
            reason: One of ``ReportReason``
            description: Optional free text within the configured bounds

        Returns:
            ContentReport: The stored report

        Raises:
            ValidationFailed: Bad reason, bad description length or self-report
            RateLimited: The reporter exhausted the report window
            ContentNotFound: The content item does not exist
            StorageUnavailable: A store or the rate limiter is unreachable
        """
        report_reason = parse_reason(reason)
        self._validate_description(description)

        await self.rate_limiter.enforce(actor.id, report_policy())

        with create_span("moderation.file_report", {"content_ref": str(ref)}):
            item = await track_content(self.content_store, self.content_source, ref)
            if item.author_id is not None and item.author_id == actor.id:
                raise ValidationFailed("You cannot report your own content")

            report = await self.report_store.add(
                ContentReport(
                    content_type=ref.content_type.value,
                    content_id=ref.content_id,
                    reporter_id=actor.id,
                    reason=report_reason.value,
                    description=description,
                    status=ReportStatus.PENDING.value,
                )
            )
            report_count = await self.content_store.increment_report_count(
                ref, report_reason.value
            )

        REPORTS_FILED_TOTAL.labels(reason=report_reason.value).inc()
        log_info(
            logger,
            "Report filed",
            report_id=str(report.id),
            content_ref=str(ref),
            reporter_id=actor.id,
            reason=report_reason.value,
            report_count=report_count,
        )
        notify(
            self.dispatcher,
            ModerationEvent(
                event_type=EventType.REPORT_FILED,
                content_type=ref.content_type.value,
                content_id=ref.content_id,
                actor_id=actor.id,
                reason=report_reason.value,
                data={"report_id": str(report.id), "report_count": report_count},
            ),
        )

        if self.auto_hide_threshold > 0:
            await self._maybe_auto_hide(ref)

        return report

    async def _maybe_auto_hide(self, ref: ContentRef) -> None:
        """Hide an undecided item once enough reports are pending on it."""
        pending = await self.report_store.count_pending_for_content(ref)
        if pending < self.auto_hide_threshold:
            return

        item = await self.content_store.get(ref)
        if item is None or not is_awaiting_decision(item.content_status):
            return

        previous = item.content_status
        if not await self.content_store.compare_and_set_status(
            ref, previous.value, ContentStatus.HIDDEN.value
        ):
            return

        reason = f"{pending} pending reports reached the auto-hide threshold"
        await self.audit_log.record(
            build_entry(
                ref, AuditAction.HIDE, SYSTEM_ACTOR_ID, reason, previous, ContentStatus.HIDDEN
            )
        )
        log_info(logger, "Content auto-hidden", content_ref=str(ref), pending_reports=pending)
        notify(
            self.dispatcher,
            ModerationEvent(
                event_type=EventType.CONTENT_AUTO_HIDDEN,
                content_type=ref.content_type.value,
                content_id=ref.content_id,
                actor_id=SYSTEM_ACTOR_ID,
                reason=reason,
            ),
        )

    async def get_report_detail(self, actor: Actor, report_id: uuid.UUID) -> ReportDetail:
        """Get a report with its content and related reports.

        Raises:
            Unauthorized: If the actor is not a moderator
            ReportNotFound: If the report does not exist
        """
        ensure_moderator(self.authorizer, actor)
        report = await self.report_store.get(report_id)
        if report is None:
            raise ReportNotFound(f"Report {report_id} not found")

        all_reports = await self.report_store.list_for_content(report.ref)
        return ReportDetail(
            report=report,
            content=await self.content_store.get(report.ref),
            related_reports=[r for r in all_reports if r.id != report.id],
            total_reports=len(all_reports),
        )

    async def list_reports(
        self, actor: Actor, query: ReportQuery
    ) -> tuple[list[ContentReport], int]:
        ensure_moderator(self.authorizer, actor)
        return await self.report_store.list_reports(query)

    async def resolve_report(
        self,
        actor: Actor,
        report_id: uuid.UUID,
        resolution_status: str,
        note: Optional[str] = None,
    ) -> ContentReport:
        """Resolve or dismiss one pending report.

        Raises:
            Unauthorized: If the actor is not a moderator
            ValidationFailed: If the resolution status is unknown
            RateLimited: If the moderator exhausted the action window
            ReportNotFound: If the report does not exist
            InvalidStateTransition: If the report is no longer pending
        """
        ensure_moderator(self.authorizer, actor)
        if resolution_status not in RESOLUTION_MAP:
            allowed = ", ".join(RESOLUTION_MAP)
            raise ValidationFailed(
                f"Invalid resolution status '{resolution_status}'; expected one of: {allowed}"
            )
        status, resolution = RESOLUTION_MAP[resolution_status]

        await self.rate_limiter.enforce(actor.id, moderation_policy())

        report = await self.report_store.get(report_id)
        if report is None:
            raise ReportNotFound(f"Report {report_id} not found")
        if not report.is_pending():
            raise InvalidStateTransition(f"Report is already {report.status}")

        resolved = await self.report_store.resolve(
            report_id, status, resolution, actor.id, note, datetime.now(timezone.utc)
        )
        if not resolved:
            raise InvalidStateTransition("Report was resolved concurrently")

        log_info(
            logger,
            "Report resolved",
            report_id=str(report_id),
            actor_id=actor.id,
            resolution_status=resolution_status,
        )
        notify(
            self.dispatcher,
            ModerationEvent(
                event_type=EventType.REPORT_RESOLVED,
                content_type=report.content_type,
                content_id=report.content_id,
                actor_id=actor.id,
                reason=note,
                data={"report_id": str(report_id), "status": resolution_status},
            ),
        )
        return await self.report_store.get(report_id)

    async def get_statistics(self, actor: Actor) -> dict:
        """Report totals by status, reason and content type, zero-filled."""
        ensure_moderator(self.authorizer, actor)
        raw = await self.report_store.statistics()

        by_status = {s.value: raw["by_status"].get(s.value, 0) for s in ReportStatus}
        by_reason = {r.value: raw["by_reason"].get(r.value, 0) for r in ReportReason}
        by_content_type = {
            t.value: raw["by_content_type"].get(t.value, 0) for t in ContentType
        }
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_reason": by_reason,
            "by_content_type": by_content_type,
        }

    async def count_false_reports(self, actor: Actor, reporter_id: str) -> int:
        """Reports by ``reporter_id`` that were dismissed or needed no action."""
        ensure_moderator(self.authorizer, actor)
        return await self.report_store.count_false_reports(reporter_id)
