"""Query objects for the moderation queue and the report listing.

The in-memory stores evaluate these in Python; the SQL repositories
translate them into WHERE / ORDER BY clauses with the same meaning.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from app.core.config import settings
from app.modules.moderation.exceptions import ValidationFailed
from app.modules.moderation.models import (
    ContentStatus,
    ContentType,
    ModeratedContent,
    ReportReason,
    ReportStatus,
)


class QueueTab(str, Enum):
    """Tabs of the moderation queue."""
    ALL = "all"
    PENDING = "pending"
    REPORTED = "reported"
    FLAGGED = "flagged"


class QueueSortField(str, Enum):
    """Sort fields accepted by the moderation queue."""
    CREATED_AT = "createdAt"
    STATUS = "status"
    REASON = "reason"
    MOST_REPORTED = "most_reported"
    HIGHEST_SPAM = "highest_spam"
    PRIORITY = "priority"


class ReportSortField(str, Enum):
    """Sort fields accepted by the report listing."""
    CREATED_AT = "createdAt"
    STATUS = "status"
    REASON = "reason"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


AWAITING_STATUSES = (ContentStatus.PENDING.value, ContentStatus.FLAGGED.value)


@dataclass(frozen=True)
class QueueQuery:
    """Normalized moderation queue query.

    ``page`` is 1-indexed; ``flag_threshold`` is the spam score an item
    must exceed to appear in the flagged tab.
    """
    tab: QueueTab = QueueTab.ALL
    content_type: Optional[ContentType] = None
    status: Optional[ContentStatus] = None
    search: Optional[str] = None
    sort_by: QueueSortField = QueueSortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    page: int = 1
    page_size: int = 20
    flag_threshold: int = 75

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def matches(self, item: ModeratedContent) -> bool:
        """Evaluate the filters against one item."""
        if self.tab == QueueTab.PENDING and item.status not in AWAITING_STATUSES:
            return False
        if self.tab == QueueTab.REPORTED and item.report_count <= 0:
            return False
        if self.tab == QueueTab.FLAGGED:
            if item.status not in AWAITING_STATUSES:
                return False
            if item.spam_score is None or item.spam_score <= self.flag_threshold:
                return False
        if self.content_type and item.content_type != self.content_type.value:
            return False
        if self.status and item.status != self.status.value:
            return False
        if self.search:
            needle = self.search.lower()
            haystack = f"{item.title or ''}\n{item.excerpt or ''}".lower()
            if needle not in haystack:
                return False
        return True

    def sort(self, items: list[ModeratedContent]) -> list[ModeratedContent]:
        """Sort items; ties always fall back to newest first, then id."""
        reverse = self.sort_order == SortOrder.DESC
        # Stable sorts applied from least to most significant key.
        ordered = sorted(items, key=lambda i: (i.content_type, i.content_id))
        ordered.sort(key=lambda i: _timestamp(i.content_created_at), reverse=True)

        if self.sort_by == QueueSortField.PRIORITY:
            ordered.sort(key=lambda i: _timestamp(i.content_created_at))
            ordered.sort(key=lambda i: i.spam_score or 0, reverse=True)
            ordered.sort(key=lambda i: i.report_count, reverse=True)
        elif self.sort_by == QueueSortField.CREATED_AT:
            ordered.sort(key=lambda i: _timestamp(i.content_created_at), reverse=reverse)
        elif self.sort_by == QueueSortField.STATUS:
            ordered.sort(key=lambda i: i.status, reverse=reverse)
        elif self.sort_by == QueueSortField.REASON:
            with_reason = [i for i in ordered if i.latest_report_reason]
            without_reason = [i for i in ordered if not i.latest_report_reason]
            with_reason.sort(key=lambda i: i.latest_report_reason, reverse=reverse)
            ordered = with_reason + without_reason
        elif self.sort_by == QueueSortField.MOST_REPORTED:
            ordered.sort(key=lambda i: i.report_count, reverse=reverse)
        elif self.sort_by == QueueSortField.HIGHEST_SPAM:
            with_score = [i for i in ordered if i.spam_score is not None]
            without_score = [i for i in ordered if i.spam_score is None]
            with_score.sort(key=lambda i: i.spam_score, reverse=reverse)
            ordered = with_score + without_score
        return ordered


@dataclass(frozen=True)
class ReportQuery:
    """Normalized report listing query."""
    status: Optional[ReportStatus] = None
    reason: Optional[ReportReason] = None
    content_type: Optional[ContentType] = None
    sort_by: ReportSortField = ReportSortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def _timestamp(value: datetime) -> float:
    return value.timestamp()


def total_pages(total: int, page_size: int) -> int:
    """Number of pages needed for ``total`` rows."""
    return (total + page_size - 1) // page_size


def parse_enum(enum_cls, value, field: str):
    """Coerce a raw value onto ``enum_cls``; None passes through.

    Raises:
        ValidationFailed: If the value is not a member
    """
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(v.value for v in enum_cls)
        raise ValidationFailed(f"Invalid {field} '{value}'; expected one of: {allowed}")


def _page_size(page: int, page_size: Optional[int]) -> int:
    if page < 1:
        raise ValidationFailed("page must be 1 or greater")
    if page_size is None:
        page_size = settings.QUEUE_DEFAULT_PAGE_SIZE
    if page_size < 1:
        raise ValidationFailed("limit must be 1 or greater")
    return min(page_size, settings.QUEUE_MAX_PAGE_SIZE)


def build_queue_query(
    tab: Optional[str] = None,
    content_type: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> QueueQuery:
    """Normalize raw queue parameters.

    ``page_size`` falls back to the default and is capped at the maximum.

    Raises:
        ValidationFailed: On unknown enum values or a page below 1
    """
    page_size = _page_size(page, page_size)
    return QueueQuery(
        tab=parse_enum(QueueTab, tab, "tab") or QueueTab.ALL,
        content_type=parse_enum(ContentType, content_type, "content type"),
        status=parse_enum(ContentStatus, status, "status"),
        search=search.strip() if search and search.strip() else None,
        sort_by=parse_enum(QueueSortField, sort_by, "sort field") or QueueSortField.CREATED_AT,
        sort_order=parse_enum(SortOrder, sort_order, "sort order") or SortOrder.DESC,
        page=page,
        page_size=page_size,
        flag_threshold=settings.SPAM_FLAG_THRESHOLD,
    )


def build_report_query(
    status: Optional[str] = None,
    reason: Optional[str] = None,
    content_type: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> ReportQuery:
    """Normalize raw report listing parameters.

    Raises:
        ValidationFailed: On unknown enum values or a page below 1
    """
    page_size = _page_size(page, page_size)
    return ReportQuery(
        status=parse_enum(ReportStatus, status, "report status"),
        reason=parse_enum(ReportReason, reason, "report reason"),
        content_type=parse_enum(ContentType, content_type, "content type"),
        sort_by=parse_enum(ReportSortField, sort_by, "sort field") or ReportSortField.CREATED_AT,
        sort_order=parse_enum(SortOrder, sort_order, "sort order") or SortOrder.DESC,
        page=page,
        page_size=page_size,
    )
