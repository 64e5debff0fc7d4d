"""Tests for report filing, report management and statistics."""

import asyncio
import uuid

import pytest
from hypothesis import given, settings, strategies as st

from app.modules.auth.actor import Actor
from app.modules.moderation.action_processor import ModerationAction
from app.modules.moderation.exceptions import (
    ContentNotFound,
    InvalidStateTransition,
    RateLimited,
    ReportNotFound,
    Unauthorized,
    ValidationFailed,
)
from app.modules.moderation.models import (
    ContentRef,
    ContentStatus,
    ContentType,
    ModerationActionType,
    ReportReason,
    ReportStatus,
)
from app.modules.moderation.notifications import EventType
from tests.moderation.factories import (
    MODERATOR,
    REPORTER,
    RecordingDispatcher,
    build_engine,
    make_snapshot,
)

A1 = ContentRef(ContentType.ARTICLE, "A1")


class TestFileReport:
    """Tests for ``ReportService.file_report``."""

    @pytest.mark.asyncio
    async def test_report_is_stored_and_counted(self) -> None:
        engine = build_engine([make_snapshot("A1")])

        report = await engine.reports.file_report(REPORTER, A1, "spam", "promotional spam links")

        assert report.status == ReportStatus.PENDING.value
        assert report.reporter_id == "U1"
        assert report.reason == "spam"
        item = await engine.content_store.get(A1)
        assert item.report_count == 1
        assert item.latest_report_reason == "spam"
        assert item.status == ContentStatus.PENDING.value
        assert engine.dispatcher.types() == [EventType.REPORT_FILED]

    @pytest.mark.asyncio
    async def test_description_is_optional(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        report = await engine.reports.file_report(REPORTER, A1, "harassment")
        assert report.description is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "SPAM", "scam", "offtopic"])
    async def test_unknown_reason_is_rejected(self, reason: str) -> None:
        engine = build_engine([make_snapshot("A1")])
        with pytest.raises(ValidationFailed):
            await engine.reports.file_report(REPORTER, A1, reason, "promotional spam links")
        assert await engine.content_store.get(A1) is None

    @given(description=st.one_of(st.text(max_size=9), st.text(min_size=1001, max_size=1100)))
    @settings(max_examples=50)
    def test_out_of_bounds_description_is_rejected(self, description: str) -> None:
        """Descriptions outside 10-1000 characters SHALL be rejected, not truncated."""

        async def run() -> None:
            engine = build_engine([make_snapshot("A1")])
            with pytest.raises(ValidationFailed):
                await engine.reports.file_report(REPORTER, A1, "spam", description)
            assert await engine.report_store.list_for_content(A1) == []

        asyncio.run(run())

    @pytest.mark.asyncio
    async def test_unknown_content_is_not_found(self) -> None:
        engine = build_engine()
        with pytest.raises(ContentNotFound):
            await engine.reports.file_report(REPORTER, A1, "spam")

    @pytest.mark.asyncio
    async def test_author_cannot_report_own_content(self) -> None:
        engine = build_engine([make_snapshot("A1", author_id="U1")])
        with pytest.raises(ValidationFailed, match="own content"):
            await engine.reports.file_report(REPORTER, A1, "spam")

    @pytest.mark.asyncio
    async def test_eleventh_report_in_window_is_rate_limited(self) -> None:
        """The reporter's first 10 reports SHALL pass and the 11th SHALL be rejected."""
        snapshots = [make_snapshot(f"A{i}") for i in range(11)]
        engine = build_engine(snapshots)

        for i in range(10):
            await engine.reports.file_report(
                REPORTER, ContentRef(ContentType.ARTICLE, f"A{i}"), "spam"
            )
        with pytest.raises(RateLimited):
            await engine.reports.file_report(
                REPORTER, ContentRef(ContentType.ARTICLE, "A10"), "spam"
            )

        rejected = await engine.content_store.get(ContentRef(ContentType.ARTICLE, "A10"))
        assert rejected is None

        engine.clock.advance(3600)
        await engine.reports.file_report(
            REPORTER, ContentRef(ContentType.ARTICLE, "A10"), "spam"
        )

    @pytest.mark.asyncio
    async def test_validation_failures_do_not_consume_the_window(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        for _ in range(20):
            with pytest.raises(ValidationFailed):
                await engine.reports.file_report(REPORTER, A1, "not-a-reason")
        await engine.reports.file_report(REPORTER, A1, "spam")

    @given(count=st.integers(min_value=1, max_value=40))
    @settings(max_examples=30)
    def test_concurrent_reports_increment_count_exactly(self, count: int) -> None:
        """N concurrent reports SHALL raise the report count by exactly N."""

        async def run() -> int:
            engine = build_engine([make_snapshot("A1")])
            reporters = [Actor(id=f"R{i}") for i in range(count)]
            await asyncio.gather(
                *(engine.reports.file_report(r, A1, "spam") for r in reporters)
            )
            return (await engine.content_store.get(A1)).report_count

        assert asyncio.run(run()) == count

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_the_report(self) -> None:
        engine = build_engine([make_snapshot("A1")], dispatcher=RecordingDispatcher(fail=True))
        report = await engine.reports.file_report(REPORTER, A1, "spam")
        assert report.id is not None


class TestAutoHide:
    """Tests for the pending-report auto-hide threshold."""

    @pytest.mark.asyncio
    async def test_item_is_hidden_when_threshold_is_reached(self) -> None:
        engine = build_engine([make_snapshot("A1")], auto_hide_threshold=3)

        for i in range(2):
            await engine.reports.file_report(Actor(id=f"R{i}"), A1, "harassment")
        assert (await engine.content_store.get(A1)).status == ContentStatus.PENDING.value

        await engine.reports.file_report(Actor(id="R2"), A1, "harassment")

        assert (await engine.content_store.get(A1)).status == ContentStatus.HIDDEN.value
        history = await engine.audit_log.history(A1)
        assert [(e.action, e.actor_id) for e in history] == [("hide", "system")]
        assert EventType.CONTENT_AUTO_HIDDEN in engine.dispatcher.types()

    @pytest.mark.asyncio
    async def test_decided_items_are_not_auto_hidden(self) -> None:
        engine = build_engine([make_snapshot("A1")], auto_hide_threshold=1)
        await engine.processor.apply(
            ModerationAction(A1, ModerationActionType.APPROVE, MODERATOR)
        )

        await engine.reports.file_report(REPORTER, A1, "spam")
        assert (await engine.content_store.get(A1)).status == ContentStatus.APPROVED.value

    @pytest.mark.asyncio
    async def test_disabled_by_default(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        for i in range(15):
            await engine.reports.file_report(Actor(id=f"R{i}"), A1, "spam")
        assert (await engine.content_store.get(A1)).status == ContentStatus.PENDING.value


class TestReportManagement:
    """Tests for detail, listing, resolution and statistics."""

    @pytest.mark.asyncio
    async def test_detail_lists_related_reports_including_same_reporter(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        first = await engine.reports.file_report(REPORTER, A1, "spam")
        second = await engine.reports.file_report(REPORTER, A1, "misinformation")
        other = await engine.reports.file_report(Actor(id="U2"), A1, "spam")

        detail = await engine.reports.get_report_detail(MODERATOR, second.id)

        assert detail.report.id == second.id
        assert detail.total_reports == 3
        assert [r.id for r in detail.related_reports] == [first.id, other.id]
        assert detail.content.report_count == 3

    @pytest.mark.asyncio
    async def test_detail_requires_moderator(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        report = await engine.reports.file_report(REPORTER, A1, "spam")
        with pytest.raises(Unauthorized):
            await engine.reports.get_report_detail(REPORTER, report.id)

    @pytest.mark.asyncio
    async def test_missing_report(self) -> None:
        engine = build_engine()
        with pytest.raises(ReportNotFound):
            await engine.reports.get_report_detail(MODERATOR, uuid.uuid4())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "resolution_status,stored_status,resolution",
        [
            ("resolved_violation", "resolved", "violation"),
            ("resolved_no_action", "resolved", "no_action"),
            ("dismissed", "dismissed", None),
        ],
    )
    async def test_resolve_maps_status(self, resolution_status, stored_status, resolution) -> None:
        engine = build_engine([make_snapshot("A1")])
        report = await engine.reports.file_report(REPORTER, A1, "spam")

        resolved = await engine.reports.resolve_report(
            MODERATOR, report.id, resolution_status, "checked"
        )

        assert resolved.status == stored_status
        assert resolved.resolution == resolution
        assert resolved.resolved_by == "mod-1"
        assert resolved.resolution_note == "checked"
        assert resolved.resolved_at is not None
        assert EventType.REPORT_RESOLVED in engine.dispatcher.types()

    @pytest.mark.asyncio
    async def test_resolved_report_cannot_be_resolved_again(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        report = await engine.reports.file_report(REPORTER, A1, "spam")
        await engine.reports.resolve_report(MODERATOR, report.id, "dismissed")

        with pytest.raises(InvalidStateTransition):
            await engine.reports.resolve_report(MODERATOR, report.id, "resolved_violation")

    @pytest.mark.asyncio
    async def test_unknown_resolution_status(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        report = await engine.reports.file_report(REPORTER, A1, "spam")
        with pytest.raises(ValidationFailed):
            await engine.reports.resolve_report(MODERATOR, report.id, "resolved")

    @pytest.mark.asyncio
    async def test_statistics_are_zero_filled(self) -> None:
        engine = build_engine([make_snapshot("A1"), make_snapshot("T1", ContentType.TOPIC)])
        await engine.reports.file_report(REPORTER, A1, "spam")
        await engine.reports.file_report(Actor(id="U2"), A1, "spam")
        report = await engine.reports.file_report(
            REPORTER, ContentRef(ContentType.TOPIC, "T1"), "off_topic"
        )
        await engine.reports.resolve_report(MODERATOR, report.id, "dismissed")

        stats = await engine.reports.get_statistics(MODERATOR)

        assert stats["total"] == 3
        assert stats["by_status"] == {"pending": 2, "resolved": 0, "dismissed": 1}
        assert stats["by_reason"] == {r.value: 0 for r in ReportReason} | {"spam": 2, "off_topic": 1}
        assert stats["by_content_type"] == {"article": 2, "topic": 1, "reply": 0, "job": 0}

    @pytest.mark.asyncio
    async def test_false_report_count(self) -> None:
        snapshots = [make_snapshot(f"A{i}") for i in range(4)]
        engine = build_engine(snapshots)
        reports = [
            await engine.reports.file_report(
                REPORTER, ContentRef(ContentType.ARTICLE, f"A{i}"), "spam"
            )
            for i in range(4)
        ]
        await engine.reports.resolve_report(MODERATOR, reports[0].id, "dismissed")
        await engine.reports.resolve_report(MODERATOR, reports[1].id, "resolved_no_action")
        await engine.reports.resolve_report(MODERATOR, reports[2].id, "resolved_violation")

        assert await engine.reports.count_false_reports(MODERATOR, "U1") == 2
        assert await engine.reports.count_false_reports(MODERATOR, "nobody") == 0
