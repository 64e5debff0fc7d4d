"""In-process implementations of the moderation stores.

Used for local runs without PostgreSQL and by the test suite. Every
mutating method holds the store's lock for its whole read-modify-write,
so increments and compare-and-set are atomic across threads and tasks.
"""

import itertools
import threading
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from app.modules.moderation.content_source import ContentSnapshot
from app.modules.moderation.filters import (
    QueueQuery,
    ReportQuery,
    ReportSortField,
    SortOrder,
)
from app.modules.moderation.models import (
    ContentRef,
    ContentReport,
    ContentStatus,
    ModeratedContent,
    ModerationAuditEntry,
    ReportResolution,
    ReportStatus,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryContentStore:
    """``ContentStore`` backed by a dict keyed on ``ContentRef``."""

    def __init__(self):
        self._items: dict[ContentRef, ModeratedContent] = {}
        self._lock = threading.Lock()

    @asynccontextmanager
    async def item_scope(self) -> AsyncIterator[None]:
        yield

    async def get(self, ref: ContentRef) -> Optional[ModeratedContent]:
        with self._lock:
            return self._items.get(ref)

    async def add(self, item: ModeratedContent) -> ModeratedContent:
        with self._lock:
            existing = self._items.get(item.ref)
            if existing is not None:
                return existing
            now = _now()
            if item.id is None:
                item.id = uuid.uuid4()
            if item.status is None:
                item.status = ContentStatus.PENDING.value
            if item.report_count is None:
                item.report_count = 0
            item.created_at = item.created_at or now
            item.updated_at = item.updated_at or now
            self._items[item.ref] = item
            return item

    async def increment_report_count(self, ref: ContentRef, reason: str) -> int:
        with self._lock:
            item = self._items[ref]
            item.report_count += 1
            item.latest_report_reason = reason
            return item.report_count

    async def reset_report_count(self, ref: ContentRef) -> None:
        with self._lock:
            item = self._items.get(ref)
            if item is not None:
                item.report_count = 0

    async def compare_and_set_status(self, ref: ContentRef, expected: str, new: str) -> bool:
        with self._lock:
            item = self._items.get(ref)
            if item is None or item.status != expected:
                return False
            item.status = new
            item.updated_at = _now()
            return True

    async def set_spam_score(self, ref: ContentRef, score: int) -> None:
        with self._lock:
            item = self._items.get(ref)
            if item is not None:
                item.spam_score = score

    async def list_queue(self, query: QueueQuery) -> tuple[list[ModeratedContent], int]:
        with self._lock:
            matching = [item for item in self._items.values() if query.matches(item)]
        ordered = query.sort(matching)
        return ordered[query.offset:query.offset + query.page_size], len(ordered)


class InMemoryReportStore:
    """``ReportStore`` backed by an insertion-ordered dict."""

    def __init__(self):
        self._reports: dict[uuid.UUID, ContentReport] = {}
        self._lock = threading.Lock()

    async def add(self, report: ContentReport) -> ContentReport:
        with self._lock:
            if report.id is None:
                report.id = uuid.uuid4()
            if report.status is None:
                report.status = ReportStatus.PENDING.value
            report.created_at = report.created_at or _now()
            self._reports[report.id] = report
            return report

    async def get(self, report_id: uuid.UUID) -> Optional[ContentReport]:
        with self._lock:
            return self._reports.get(report_id)

    async def list_for_content(self, ref: ContentRef) -> list[ContentReport]:
        with self._lock:
            return [r for r in self._reports.values() if r.ref == ref]

    async def count_pending_for_content(self, ref: ContentRef) -> int:
        with self._lock:
            return sum(1 for r in self._reports.values() if r.ref == ref and r.is_pending())

    async def list_reports(self, query: ReportQuery) -> tuple[list[ContentReport], int]:
        with self._lock:
            matching = [
                r for r in self._reports.values()
                if (query.status is None or r.status == query.status.value)
                and (query.reason is None or r.reason == query.reason.value)
                and (query.content_type is None or r.content_type == query.content_type.value)
            ]

        # Newest first as the tie-breaker, then the requested key.
        matching.sort(key=lambda r: r.created_at, reverse=True)
        reverse = query.sort_order == SortOrder.DESC
        if query.sort_by == ReportSortField.CREATED_AT:
            matching.sort(key=lambda r: r.created_at, reverse=reverse)
        elif query.sort_by == ReportSortField.STATUS:
            matching.sort(key=lambda r: r.status, reverse=reverse)
        elif query.sort_by == ReportSortField.REASON:
            matching.sort(key=lambda r: r.reason, reverse=reverse)

        return matching[query.offset:query.offset + query.page_size], len(matching)

    async def resolve(
        self,
        report_id: uuid.UUID,
        status: ReportStatus,
        resolution: Optional[ReportResolution],
        resolver_id: str,
        note: Optional[str],
        resolved_at: datetime,
    ) -> bool:
        with self._lock:
            report = self._reports.get(report_id)
            if report is None or not report.is_pending():
                return False
            self._mark_resolved(report, status, resolution, resolver_id, note, resolved_at)
            return True

    async def resolve_pending_for_content(
        self,
        ref: ContentRef,
        resolution: ReportResolution,
        resolver_id: str,
        note: Optional[str],
        resolved_at: datetime,
    ) -> int:
        with self._lock:
            pending = [r for r in self._reports.values() if r.ref == ref and r.is_pending()]
            for report in pending:
                self._mark_resolved(
                    report, ReportStatus.RESOLVED, resolution, resolver_id, note, resolved_at
                )
            return len(pending)

    async def statistics(self) -> dict:
        by_status: dict[str, int] = {}
        by_reason: dict[str, int] = {}
        by_content_type: dict[str, int] = {}
        with self._lock:
            for report in self._reports.values():
                by_status[report.status] = by_status.get(report.status, 0) + 1
                by_reason[report.reason] = by_reason.get(report.reason, 0) + 1
                by_content_type[report.content_type] = by_content_type.get(report.content_type, 0) + 1
        return {
            "by_status": by_status,
            "by_reason": by_reason,
            "by_content_type": by_content_type,
        }

    async def count_false_reports(self, reporter_id: str) -> int:
        with self._lock:
            return sum(
                1
                for r in self._reports.values()
                if r.reporter_id == reporter_id
                and (
                    r.status == ReportStatus.DISMISSED.value
                    or (
                        r.status == ReportStatus.RESOLVED.value
                        and r.resolution == ReportResolution.NO_ACTION.value
                    )
                )
            )

    @staticmethod
    def _mark_resolved(
        report: ContentReport,
        status: ReportStatus,
        resolution: Optional[ReportResolution],
        resolver_id: str,
        note: Optional[str],
        resolved_at: datetime,
    ) -> None:
        report.status = status.value
        report.resolution = resolution.value if resolution else None
        report.resolved_by = resolver_id
        report.resolution_note = note
        report.resolved_at = resolved_at


class InMemoryAuditStore:
    """Append-only ``AuditStore``; entries are never replaced or removed."""

    def __init__(self):
        self._entries: list[ModerationAuditEntry] = []
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    async def append(self, entry: ModerationAuditEntry) -> ModerationAuditEntry:
        with self._lock:
            if entry.id is None:
                entry.id = uuid.uuid4()
            entry.sequence = next(self._sequence)
            self._entries.append(entry)
            return entry

    async def history(self, ref: ContentRef) -> list[ModerationAuditEntry]:
        with self._lock:
            return [e for e in self._entries if e.ref == ref]


class StaticContentSource:
    """``ContentSource`` serving snapshots from an in-process catalogue."""

    def __init__(self, snapshots: Optional[list[ContentSnapshot]] = None):
        self._snapshots: dict[ContentRef, ContentSnapshot] = {}
        for snapshot in snapshots or []:
            self.put(snapshot)

    def put(self, snapshot: ContentSnapshot) -> None:
        self._snapshots[snapshot.ref] = snapshot

    async def get_content(self, ref: ContentRef) -> Optional[ContentSnapshot]:
        return self._snapshots.get(ref)
