"""Property-based tests for the moderation queue.

Tabs and filters select exactly the matching items, totals reflect the
filters rather than the page, and every sort has a deterministic order.
"""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from app.modules.moderation.exceptions import Unauthorized, ValidationFailed
from app.modules.moderation.filters import (
    QueueQuery,
    QueueSortField,
    QueueTab,
    SortOrder,
    build_queue_query,
)
from app.modules.moderation.models import ContentStatus, ContentType, SpamRiskLevel
from tests.moderation.factories import (
    MODERATOR,
    REPORTER,
    build_engine,
    create_test_content,
    minutes_ago,
)

item_strategy = st.builds(
    dict,
    content_type=st.sampled_from(list(ContentType)),
    status=st.sampled_from(list(ContentStatus)),
    report_count=st.integers(min_value=0, max_value=20),
    spam_score=st.one_of(st.none(), st.integers(min_value=0, max_value=100)),
    age=st.integers(min_value=0, max_value=10_000),
)


def _seed_items(raw_items: list[dict]):
    return [
        create_test_content(
            f"C{i}",
            content_type=raw["content_type"],
            status=raw["status"],
            report_count=raw["report_count"],
            spam_score=raw["spam_score"],
            created_at=minutes_ago(raw["age"]),
        )
        for i, raw in enumerate(raw_items)
    ]


async def _list(engine, **kwargs):
    return await engine.queue.list_queue(MODERATOR, build_queue_query(**kwargs))


class TestQueueTabs:
    """Property tests for tab membership."""

    @given(raw_items=st.lists(item_strategy, max_size=25), tab=st.sampled_from(list(QueueTab)))
    @settings(max_examples=100)
    def test_tab_contains_exactly_matching_items(self, raw_items: list[dict], tab: QueueTab) -> None:
        """Each tab SHALL return every matching item and nothing else."""
        items = _seed_items(raw_items)

        def expected(item) -> bool:
            awaiting = item.status in ("pending", "flagged")
            if tab == QueueTab.PENDING:
                return awaiting
            if tab == QueueTab.REPORTED:
                return item.report_count > 0
            if tab == QueueTab.FLAGGED:
                return awaiting and item.spam_score is not None and item.spam_score > 75
            return True

        async def run():
            engine = build_engine()
            await engine.seed(*items)
            return await _list(engine, tab=tab.value, page_size=100)

        page = asyncio.run(run())
        got = {q.content.content_id for q in page.items}
        assert got == {i.content_id for i in items if expected(i)}
        assert page.total == len(got)

    @pytest.mark.asyncio
    async def test_flagged_tab_uses_strict_threshold(self) -> None:
        engine = build_engine()
        await engine.seed(
            create_test_content("at", spam_score=75),
            create_test_content("above", spam_score=76),
            create_test_content("decided", status=ContentStatus.APPROVED, spam_score=99),
            create_test_content("flagged", status=ContentStatus.FLAGGED, spam_score=90),
        )

        page = await _list(engine, tab="flagged")

        assert {q.content.content_id for q in page.items} == {"above", "flagged"}


class TestQueueFilters:
    """Tests for type, status and search filters."""

    @given(
        raw_items=st.lists(item_strategy, max_size=25),
        content_type=st.sampled_from(list(ContentType)),
        status=st.sampled_from(list(ContentStatus)),
    )
    @settings(max_examples=100)
    def test_type_and_status_filters_combine(
        self, raw_items: list[dict], content_type: ContentType, status: ContentStatus
    ) -> None:
        items = _seed_items(raw_items)

        async def run():
            engine = build_engine()
            await engine.seed(*items)
            return await _list(
                engine, content_type=content_type.value, status=status.value, page_size=100
            )

        page = asyncio.run(run())
        expected = {
            i.content_id
            for i in items
            if i.content_type == content_type.value and i.status == status.value
        }
        assert {q.content.content_id for q in page.items} == expected

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_over_title_and_excerpt(self) -> None:
        engine = build_engine()
        await engine.seed(
            create_test_content("A1", title="Cheap Watches Here"),
            create_test_content("A2", title="Gardening", excerpt="buy cheap WATCHES now"),
            create_test_content("A3", title="Gardening", excerpt="tomatoes"),
        )

        page = await _list(engine, search="  cheap watches ")

        assert {q.content.content_id for q in page.items} == {"A1", "A2"}

    @pytest.mark.asyncio
    async def test_blank_search_matches_everything(self) -> None:
        engine = build_engine()
        await engine.seed(create_test_content("A1"), create_test_content("A2"))
        page = await _list(engine, search="   ")
        assert page.total == 2

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"tab": "archived"},
            {"content_type": "video"},
            {"status": "removed"},
            {"sort_by": "popularity"},
            {"sort_order": "sideways"},
            {"page": 0},
            {"page_size": 0},
        ],
    )
    def test_invalid_parameters_are_rejected(self, kwargs: dict) -> None:
        with pytest.raises(ValidationFailed):
            build_queue_query(**kwargs)

    def test_page_size_is_capped(self) -> None:
        assert build_queue_query(page_size=1000).page_size == 100
        assert build_queue_query().page_size == 20

    @pytest.mark.asyncio
    async def test_requires_moderator(self) -> None:
        engine = build_engine()
        with pytest.raises(Unauthorized):
            await engine.queue.list_queue(REPORTER, QueueQuery())


class TestQueueSorting:
    """Tests for sort keys and their tie-breakers."""

    @pytest.mark.asyncio
    async def test_priority_sort(self) -> None:
        """Priority SHALL order by report count, then spam score, then oldest first."""
        engine = build_engine()
        await engine.seed(
            create_test_content("new-clean", report_count=0, created_at=minutes_ago(1)),
            create_test_content("reported", report_count=3, spam_score=10, created_at=minutes_ago(5)),
            create_test_content("reported-spammy", report_count=3, spam_score=80, created_at=minutes_ago(2)),
            create_test_content("spammy", report_count=0, spam_score=90, created_at=minutes_ago(3)),
            create_test_content("old-clean", report_count=0, created_at=minutes_ago(60)),
        )

        page = await _list(engine, sort_by="priority", sort_order="asc")

        assert [q.content.content_id for q in page.items] == [
            "reported-spammy",
            "reported",
            "spammy",
            "old-clean",
            "new-clean",
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sort_order", ["asc", "desc"])
    async def test_highest_spam_puts_unscored_items_last(self, sort_order: str) -> None:
        engine = build_engine()
        await engine.seed(
            create_test_content("none", spam_score=None),
            create_test_content("low", spam_score=5),
            create_test_content("high", spam_score=95),
        )

        page = await _list(engine, sort_by="highest_spam", sort_order=sort_order)

        ids = [q.content.content_id for q in page.items]
        assert ids[-1] == "none"
        assert ids[:2] == (["low", "high"] if sort_order == "asc" else ["high", "low"])

    @pytest.mark.asyncio
    async def test_reason_sort_puts_unreported_items_last(self) -> None:
        engine = build_engine()
        await engine.seed(
            create_test_content("clean"),
            create_test_content("spam", report_count=1, latest_report_reason="spam"),
            create_test_content("copyright", report_count=1, latest_report_reason="copyright"),
        )

        page = await _list(engine, sort_by="reason", sort_order="asc")

        assert [q.content.content_id for q in page.items] == ["copyright", "spam", "clean"]

    @given(
        raw_items=st.lists(item_strategy, min_size=1, max_size=25),
        sort_by=st.sampled_from(list(QueueSortField)),
        sort_order=st.sampled_from(list(SortOrder)),
    )
    @settings(max_examples=100)
    def test_sorting_is_deterministic_and_complete(
        self, raw_items: list[dict], sort_by: QueueSortField, sort_order: SortOrder
    ) -> None:
        """Sorting SHALL neither drop nor duplicate items, and SHALL not
        depend on insertion order."""
        items = _seed_items(raw_items)

        async def run(seed_order):
            engine = build_engine()
            await engine.seed(*seed_order)
            page = await _list(
                engine, sort_by=sort_by.value, sort_order=sort_order.value, page_size=100
            )
            return [q.content.content_id for q in page.items]

        forward = asyncio.run(run(items))
        backward = asyncio.run(run(list(reversed(items))))
        assert forward == backward
        assert sorted(forward) == sorted(i.content_id for i in items)

    @pytest.mark.asyncio
    async def test_default_sort_is_newest_first(self) -> None:
        engine = build_engine()
        await engine.seed(
            create_test_content("old", created_at=minutes_ago(30)),
            create_test_content("new", created_at=minutes_ago(1)),
        )
        page = await _list(engine)
        assert [q.content.content_id for q in page.items] == ["new", "old"]


class TestQueuePagination:
    """Tests for pagination totals and spam risk bands."""

    @given(count=st.integers(min_value=0, max_value=60), page_size=st.integers(min_value=1, max_value=25))
    @settings(max_examples=100)
    def test_pages_partition_the_result(self, count: int, page_size: int) -> None:
        """Walking every page SHALL visit each matching item exactly once."""
        items = [create_test_content(f"C{i}", created_at=minutes_ago(i)) for i in range(count)]

        async def run():
            engine = build_engine()
            await engine.seed(*items)
            first = await _list(engine, page_size=page_size)
            seen = [q.content.content_id for q in first.items]
            for page in range(2, first.total_pages + 1):
                result = await _list(engine, page=page, page_size=page_size)
                assert result.total == count
                seen.extend(q.content.content_id for q in result.items)
            return first, seen

        first, seen = asyncio.run(run())
        assert first.total == count
        assert first.total_pages == -(-count // page_size)
        assert seen == [f"C{i}" for i in range(count)]

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self) -> None:
        engine = build_engine()
        await engine.seed(create_test_content("A1"))
        page = await _list(engine, page=5)
        assert page.items == []
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_items_carry_spam_risk(self) -> None:
        engine = build_engine()
        await engine.seed(
            create_test_content("unknown", created_at=minutes_ago(1)),
            create_test_content("low", spam_score=10, created_at=minutes_ago(2)),
            create_test_content("medium", spam_score=75, created_at=minutes_ago(3)),
            create_test_content("high", spam_score=76, created_at=minutes_ago(4)),
        )

        page = await _list(engine)

        assert [q.spam_risk for q in page.items] == [
            SpamRiskLevel.UNKNOWN,
            SpamRiskLevel.LOW,
            SpamRiskLevel.MEDIUM,
            SpamRiskLevel.HIGH,
        ]
