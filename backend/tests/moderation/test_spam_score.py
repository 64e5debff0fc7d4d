"""Tests for spam score ingestion and risk banding."""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from app.modules.moderation.exceptions import RateLimited, Unauthorized, ValidationFailed
from app.modules.moderation.models import (
    ContentRef,
    ContentStatus,
    ContentType,
    SpamRiskLevel,
)
from app.modules.moderation.rate_limiter import moderation_policy
from app.modules.moderation.spam import band_for_score
from tests.moderation.factories import (
    MODERATOR,
    REPORTER,
    build_engine,
    create_test_content,
    make_snapshot,
)

A1 = ContentRef(ContentType.ARTICLE, "A1")


class TestBanding:
    """Tests for ``band_for_score``."""

    @pytest.mark.parametrize(
        "score,band",
        [
            (None, SpamRiskLevel.UNKNOWN),
            (0, SpamRiskLevel.LOW),
            (39, SpamRiskLevel.LOW),
            (40, SpamRiskLevel.MEDIUM),
            (75, SpamRiskLevel.MEDIUM),
            (76, SpamRiskLevel.HIGH),
            (100, SpamRiskLevel.HIGH),
        ],
    )
    def test_default_bands(self, score, band) -> None:
        assert band_for_score(score) == band

    @given(score=st.integers(min_value=0, max_value=100))
    @settings(max_examples=100)
    def test_bands_are_monotonic(self, score: int) -> None:
        """A higher score SHALL never fall into a lower band."""
        order = [SpamRiskLevel.LOW, SpamRiskLevel.MEDIUM, SpamRiskLevel.HIGH]
        if score < 100:
            assert order.index(band_for_score(score)) <= order.index(band_for_score(score + 1))


class TestRecordScore:
    """Tests for ``SpamScoreService.record_score``."""

    @pytest.mark.asyncio
    async def test_high_score_flags_pending_item(self) -> None:
        engine = build_engine([make_snapshot("A1")])

        item = await engine.spam.record_score(MODERATOR, A1, 90)

        assert item.spam_score == 90
        assert item.status == ContentStatus.FLAGGED.value
        history = await engine.audit_log.history(A1)
        assert [(e.action, e.actor_id) for e in history] == [("auto_flag", "system")]

    @pytest.mark.asyncio
    async def test_flag_is_not_lowered_by_a_later_score(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        await engine.spam.record_score(MODERATOR, A1, 90)

        item = await engine.spam.record_score(MODERATOR, A1, 10)

        assert item.spam_score == 10
        assert item.status == ContentStatus.FLAGGED.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [ContentStatus.APPROVED, ContentStatus.HIDDEN])
    async def test_decided_items_keep_their_status(self, status: ContentStatus) -> None:
        engine = build_engine()
        await engine.seed(create_test_content("A1", status=status))

        item = await engine.spam.record_score(MODERATOR, A1, 99)

        assert item.status == status.value
        assert await engine.audit_log.history(A1) == []

    @given(score=st.integers(min_value=0, max_value=75))
    @settings(max_examples=50)
    def test_scores_at_or_below_threshold_do_not_flag(self, score: int) -> None:
        async def run():
            engine = build_engine([make_snapshot("A1")])
            return await engine.spam.record_score(MODERATOR, A1, score)

        item = asyncio.run(run())
        assert item.status == ContentStatus.PENDING.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [-1, 101, 1000])
    async def test_out_of_range_scores_are_rejected(self, score: int) -> None:
        engine = build_engine([make_snapshot("A1")])
        with pytest.raises(ValidationFailed):
            await engine.spam.record_score(MODERATOR, A1, score)

    @pytest.mark.asyncio
    async def test_requires_moderator(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        with pytest.raises(Unauthorized):
            await engine.spam.record_score(REPORTER, A1, 50)

    @pytest.mark.asyncio
    async def test_scores_share_the_moderator_action_limit(self) -> None:
        engine = build_engine([make_snapshot("A1")])

        for _ in range(100):
            await engine.spam.record_score(MODERATOR, A1, 20)
        with pytest.raises(RateLimited):
            await engine.spam.record_score(MODERATOR, A1, 20)

    @pytest.mark.asyncio
    async def test_rejected_scores_do_not_consume_the_window(self) -> None:
        engine = build_engine([make_snapshot("A1")])
        with pytest.raises(ValidationFailed):
            await engine.spam.record_score(MODERATOR, A1, 150)

        await engine.spam.record_score(MODERATOR, A1, 20)

        decision = await engine.rate_limiter.hit(MODERATOR.id, moderation_policy())
        assert decision.count == 2
