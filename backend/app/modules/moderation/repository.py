"""Repositories for moderation data access.

``ContentStore``, ``ReportStore`` and ``AuditStore`` are the storage
interfaces the services depend on. The SQLAlchemy repositories below
implement them for PostgreSQL; ``app.modules.moderation.memory`` holds
the in-process implementations.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, Protocol

from sqlalchemy import and_, asc, desc, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.moderation.exceptions import StorageUnavailable
from app.modules.moderation.filters import (
    AWAITING_STATUSES,
    QueueQuery,
    QueueSortField,
    QueueTab,
    ReportQuery,
    ReportSortField,
    SortOrder,
)
from app.modules.moderation.models import (
    ContentRef,
    ContentReport,
    ModeratedContent,
    ModerationAuditEntry,
    ReportResolution,
    ReportStatus,
)


class ContentStore(Protocol):
    """Storage interface for the moderated content projection."""

    async def get(self, ref: ContentRef) -> Optional[ModeratedContent]: ...

    async def add(self, item: ModeratedContent) -> ModeratedContent: ...

    async def increment_report_count(self, ref: ContentRef, reason: str) -> int: ...

    async def reset_report_count(self, ref: ContentRef) -> None: ...

    async def compare_and_set_status(
        self, ref: ContentRef, expected: str, new: str
    ) -> bool: ...

    async def set_spam_score(self, ref: ContentRef, score: int) -> None: ...

    async def list_queue(self, query: QueueQuery) -> tuple[list[ModeratedContent], int]: ...

    def item_scope(self): ...


class ReportStore(Protocol):
    """Storage interface for user reports."""

    async def add(self, report: ContentReport) -> ContentReport: ...

    async def get(self, report_id: uuid.UUID) -> Optional[ContentReport]: ...

    async def list_for_content(self, ref: ContentRef) -> list[ContentReport]: ...

    async def count_pending_for_content(self, ref: ContentRef) -> int: ...

    async def list_reports(self, query: ReportQuery) -> tuple[list[ContentReport], int]: ...

    async def resolve(
        self,
        report_id: uuid.UUID,
        status: ReportStatus,
        resolution: Optional[ReportResolution],
        resolver_id: str,
        note: Optional[str],
        resolved_at: datetime,
    ) -> bool: ...

    async def resolve_pending_for_content(
        self,
        ref: ContentRef,
        resolution: ReportResolution,
        resolver_id: str,
        note: Optional[str],
        resolved_at: datetime,
    ) -> int: ...

    async def statistics(self) -> dict: ...

    async def count_false_reports(self, reporter_id: str) -> int: ...


class AuditStore(Protocol):
    """Append-only storage interface for the audit trail."""

    async def append(self, entry: ModerationAuditEntry) -> ModerationAuditEntry: ...

    async def history(self, ref: ContentRef) -> list[ModerationAuditEntry]: ...


def _content_ref_clause(model, ref: ContentRef):
    return and_(
        model.content_type == ref.content_type.value,
        model.content_id == ref.content_id,
    )


class ContentRepository:
    """SQLAlchemy implementation of ``ContentStore``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def item_scope(self) -> AsyncIterator[None]:
        """Isolate one bulk item in a savepoint."""
        async with self.session.begin_nested():
            yield

    async def get(self, ref: ContentRef) -> Optional[ModeratedContent]:
        # Counters and status change through bulk UPDATEs; always reload the row.
        try:
            result = await self.session.execute(
                select(ModeratedContent)
                .where(_content_ref_clause(ModeratedContent, ref))
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to load {ref}: {e}") from e
        return result.scalar_one_or_none()

    async def add(self, item: ModeratedContent) -> ModeratedContent:
        """Track an item; returns the stored row if it is already tracked."""
        existing = await self.get(item.ref)
        if existing is not None:
            return existing
        try:
            async with self.session.begin_nested():
                self.session.add(item)
        except IntegrityError:
            # Tracked concurrently by another request
            existing = await self.get(item.ref)
            if existing is None:
                raise StorageUnavailable(f"Failed to track {item.ref}")
            return existing
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to track {item.ref}: {e}") from e
        return item

    async def increment_report_count(self, ref: ContentRef, reason: str) -> int:
        """Atomically bump the cached report count and return the new value."""
        try:
            result = await self.session.execute(
                update(ModeratedContent)
                .where(_content_ref_clause(ModeratedContent, ref))
                .values(
                    report_count=ModeratedContent.report_count + 1,
                    latest_report_reason=reason,
                )
                .returning(ModeratedContent.report_count)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to count report on {ref}: {e}") from e
        return result.scalar_one()

    async def reset_report_count(self, ref: ContentRef) -> None:
        try:
            await self.session.execute(
                update(ModeratedContent)
                .where(_content_ref_clause(ModeratedContent, ref))
                .values(report_count=0)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to reset report count on {ref}: {e}") from e

    async def compare_and_set_status(self, ref: ContentRef, expected: str, new: str) -> bool:
        """Set ``status`` to ``new`` only if it still equals ``expected``."""
        try:
            result = await self.session.execute(
                update(ModeratedContent)
                .where(
                    and_(
                        _content_ref_clause(ModeratedContent, ref),
                        ModeratedContent.status == expected,
                    )
                )
                .values(status=new, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to update status of {ref}: {e}") from e
        return result.rowcount == 1

    async def set_spam_score(self, ref: ContentRef, score: int) -> None:
        try:
            await self.session.execute(
                update(ModeratedContent)
                .where(_content_ref_clause(ModeratedContent, ref))
                .values(spam_score=score)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to store spam score of {ref}: {e}") from e

    async def list_queue(self, query: QueueQuery) -> tuple[list[ModeratedContent], int]:
        """Filter, count, sort and page the moderation queue."""
        conditions = []

        if query.tab == QueueTab.PENDING:
            conditions.append(ModeratedContent.status.in_(AWAITING_STATUSES))
        elif query.tab == QueueTab.REPORTED:
            conditions.append(ModeratedContent.report_count > 0)
        elif query.tab == QueueTab.FLAGGED:
            conditions.append(ModeratedContent.status.in_(AWAITING_STATUSES))
            conditions.append(ModeratedContent.spam_score > query.flag_threshold)

        if query.content_type:
            conditions.append(ModeratedContent.content_type == query.content_type.value)
        if query.status:
            conditions.append(ModeratedContent.status == query.status.value)
        if query.search:
            search_term = f"%{query.search}%"
            conditions.append(
                or_(
                    ModeratedContent.title.ilike(search_term),
                    ModeratedContent.excerpt.ilike(search_term),
                )
            )

        count_query = select(func.count(ModeratedContent.id))
        data_query = select(ModeratedContent)
        if conditions:
            count_query = count_query.where(and_(*conditions))
            data_query = data_query.where(and_(*conditions))

        direction = desc if query.sort_order == SortOrder.DESC else asc
        if query.sort_by == QueueSortField.PRIORITY:
            order_by = [
                desc(ModeratedContent.report_count),
                desc(func.coalesce(ModeratedContent.spam_score, 0)),
                asc(ModeratedContent.content_created_at),
            ]
        elif query.sort_by == QueueSortField.STATUS:
            order_by = [direction(ModeratedContent.status)]
        elif query.sort_by == QueueSortField.REASON:
            order_by = [direction(ModeratedContent.latest_report_reason).nulls_last()]
        elif query.sort_by == QueueSortField.MOST_REPORTED:
            order_by = [direction(ModeratedContent.report_count)]
        elif query.sort_by == QueueSortField.HIGHEST_SPAM:
            order_by = [direction(ModeratedContent.spam_score).nulls_last()]
        else:
            order_by = [direction(ModeratedContent.content_created_at)]
        order_by += [
            desc(ModeratedContent.content_created_at),
            asc(ModeratedContent.content_type),
            asc(ModeratedContent.content_id),
        ]

        data_query = data_query.order_by(*order_by).offset(query.offset).limit(query.page_size)

        try:
            total = (await self.session.execute(count_query)).scalar() or 0
            result = await self.session.execute(data_query)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to list moderation queue: {e}") from e
        return list(result.scalars().all()), total


class ReportRepository:
    """SQLAlchemy implementation of ``ReportStore``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, report: ContentReport) -> ContentReport:
        try:
            self.session.add(report)
            await self.session.flush()
            await self.session.refresh(report)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to store report: {e}") from e
        return report

    async def get(self, report_id: uuid.UUID) -> Optional[ContentReport]:
        try:
            result = await self.session.execute(
                select(ContentReport)
                .where(ContentReport.id == report_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to load report {report_id}: {e}") from e
        return result.scalar_one_or_none()

    async def list_for_content(self, ref: ContentRef) -> list[ContentReport]:
        """All reports on a content item, oldest first."""
        try:
            result = await self.session.execute(
                select(ContentReport)
                .where(_content_ref_clause(ContentReport, ref))
                .order_by(ContentReport.created_at.asc(), ContentReport.id.asc())
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to load reports for {ref}: {e}") from e
        return list(result.scalars().all())

    async def count_pending_for_content(self, ref: ContentRef) -> int:
        try:
            result = await self.session.execute(
                select(func.count(ContentReport.id)).where(
                    and_(
                        _content_ref_clause(ContentReport, ref),
                        ContentReport.status == ReportStatus.PENDING.value,
                    )
                )
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to count reports for {ref}: {e}") from e
        return result.scalar() or 0

    async def list_reports(self, query: ReportQuery) -> tuple[list[ContentReport], int]:
        conditions = []
        if query.status:
            conditions.append(ContentReport.status == query.status.value)
        if query.reason:
            conditions.append(ContentReport.reason == query.reason.value)
        if query.content_type:
            conditions.append(ContentReport.content_type == query.content_type.value)

        count_query = select(func.count(ContentReport.id))
        data_query = select(ContentReport)
        if conditions:
            count_query = count_query.where(and_(*conditions))
            data_query = data_query.where(and_(*conditions))

        direction = desc if query.sort_order == SortOrder.DESC else asc
        sort_column = {
            ReportSortField.CREATED_AT: ContentReport.created_at,
            ReportSortField.STATUS: ContentReport.status,
            ReportSortField.REASON: ContentReport.reason,
        }[query.sort_by]
        data_query = (
            data_query
            .order_by(direction(sort_column), desc(ContentReport.created_at), asc(ContentReport.id))
            .offset(query.offset)
            .limit(query.page_size)
        )

        try:
            total = (await self.session.execute(count_query)).scalar() or 0
            result = await self.session.execute(data_query)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to list reports: {e}") from e
        return list(result.scalars().all()), total

    async def resolve(
        self,
        report_id: uuid.UUID,
        status: ReportStatus,
        resolution: Optional[ReportResolution],
        resolver_id: str,
        note: Optional[str],
        resolved_at: datetime,
    ) -> bool:
        """Resolve one report if it is still pending."""
        try:
            result = await self.session.execute(
                update(ContentReport)
                .where(
                    and_(
                        ContentReport.id == report_id,
                        ContentReport.status == ReportStatus.PENDING.value,
                    )
                )
                .values(
                    status=status.value,
                    resolution=resolution.value if resolution else None,
                    resolved_by=resolver_id,
                    resolution_note=note,
                    resolved_at=resolved_at,
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to resolve report {report_id}: {e}") from e
        return result.rowcount == 1

    async def resolve_pending_for_content(
        self,
        ref: ContentRef,
        resolution: ReportResolution,
        resolver_id: str,
        note: Optional[str],
        resolved_at: datetime,
    ) -> int:
        """Resolve every pending report on a content item."""
        try:
            result = await self.session.execute(
                update(ContentReport)
                .where(
                    and_(
                        _content_ref_clause(ContentReport, ref),
                        ContentReport.status == ReportStatus.PENDING.value,
                    )
                )
                .values(
                    status=ReportStatus.RESOLVED.value,
                    resolution=resolution.value,
                    resolved_by=resolver_id,
                    resolution_note=note,
                    resolved_at=resolved_at,
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to resolve reports for {ref}: {e}") from e
        return result.rowcount or 0

    async def statistics(self) -> dict:
        """Report counts grouped by status, reason and content type."""
        try:
            by_status = await self.session.execute(
                select(ContentReport.status, func.count(ContentReport.id))
                .group_by(ContentReport.status)
            )
            by_reason = await self.session.execute(
                select(ContentReport.reason, func.count(ContentReport.id))
                .group_by(ContentReport.reason)
            )
            by_type = await self.session.execute(
                select(ContentReport.content_type, func.count(ContentReport.id))
                .group_by(ContentReport.content_type)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to compute report statistics: {e}") from e
        return {
            "by_status": dict(by_status.all()),
            "by_reason": dict(by_reason.all()),
            "by_content_type": dict(by_type.all()),
        }

    async def count_false_reports(self, reporter_id: str) -> int:
        """Reports by ``reporter_id`` that were dismissed or needed no action."""
        try:
            result = await self.session.execute(
                select(func.count(ContentReport.id)).where(
                    and_(
                        ContentReport.reporter_id == reporter_id,
                        or_(
                            ContentReport.status == ReportStatus.DISMISSED.value,
                            and_(
                                ContentReport.status == ReportStatus.RESOLVED.value,
                                ContentReport.resolution == ReportResolution.NO_ACTION.value,
                            ),
                        ),
                    )
                )
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to count reports by {reporter_id}: {e}") from e
        return result.scalar() or 0


class AuditRepository:
    """SQLAlchemy implementation of ``AuditStore``. Insert and read only."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: ModerationAuditEntry) -> ModerationAuditEntry:
        # Savepoint so a failed insert can be retried on the same session.
        try:
            async with self.session.begin_nested():
                self.session.add(entry)
            await self.session.refresh(entry)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to write audit entry for {entry.ref}: {e}") from e
        return entry

    async def history(self, ref: ContentRef) -> list[ModerationAuditEntry]:
        """Audit entries for a content item, oldest first."""
        try:
            result = await self.session.execute(
                select(ModerationAuditEntry)
                .where(_content_ref_clause(ModerationAuditEntry, ref))
                .order_by(ModerationAuditEntry.sequence.asc())
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Failed to load history of {ref}: {e}") from e
        return list(result.scalars().all())
