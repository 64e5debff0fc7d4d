"""Property-based tests for the fixed-window rate limiter."""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from app.modules.moderation.exceptions import RateLimited, StorageUnavailable
from app.modules.moderation.rate_limiter import (
    InMemoryCounterStore,
    RateLimiter,
    RateLimitPolicy,
    moderation_policy,
    report_policy,
)
from tests.moderation.factories import FrozenClock


class FailingCounterStore:
    """Counter store whose backend is unreachable."""

    async def increment(self, key: str, window_start: int, window_seconds: int) -> int:
        raise StorageUnavailable("counter store down")


policy_strategy = st.builds(
    RateLimitPolicy,
    name=st.just("test"),
    window_seconds=st.integers(min_value=1, max_value=7200),
    max_requests=st.integers(min_value=1, max_value=30),
)


def _window_start(clock: FrozenClock, policy: RateLimitPolicy) -> float:
    return (clock.now // policy.window_seconds) * policy.window_seconds


class TestRateLimiterWindow:
    """Property tests for admit/reject decisions."""

    @given(policy=policy_strategy, extra=st.integers(min_value=1, max_value=10))
    @settings(max_examples=100)
    def test_first_max_requests_are_admitted_then_rejected(
        self, policy: RateLimitPolicy, extra: int
    ) -> None:
        """Within one window the first max_requests calls SHALL pass and
        every later call SHALL be rejected."""

        async def run() -> list[bool]:
            clock = FrozenClock()
            clock.now = _window_start(clock, policy)
            limiter = RateLimiter(InMemoryCounterStore(), clock=clock)
            return [
                await limiter.admit("actor", policy)
                for _ in range(policy.max_requests + extra)
            ]

        decisions = asyncio.run(run())
        assert decisions[: policy.max_requests] == [True] * policy.max_requests
        assert decisions[policy.max_requests:] == [False] * extra

    @given(policy=policy_strategy)
    @settings(max_examples=100)
    def test_new_window_resets_the_counter(self, policy: RateLimitPolicy) -> None:
        async def run() -> tuple[bool, bool]:
            clock = FrozenClock()
            limiter = RateLimiter(InMemoryCounterStore(), clock=clock)
            for _ in range(policy.max_requests + 1):
                await limiter.admit("actor", policy)
            blocked = await limiter.admit("actor", policy)
            clock.now = _window_start(clock, policy) + policy.window_seconds
            return blocked, await limiter.admit("actor", policy)

        blocked, admitted = asyncio.run(run())
        assert blocked is False
        assert admitted is True

    @given(policy=policy_strategy)
    @settings(max_examples=50)
    def test_actors_are_counted_separately(self, policy: RateLimitPolicy) -> None:
        async def run() -> bool:
            limiter = RateLimiter(InMemoryCounterStore(), clock=FrozenClock())
            for _ in range(policy.max_requests + 1):
                await limiter.admit("noisy", policy)
            return await limiter.admit("quiet", policy)

        assert asyncio.run(run()) is True

    @pytest.mark.asyncio
    async def test_rejected_calls_still_count(self) -> None:
        """Rejected calls SHALL keep counting so retries cannot reopen the window."""
        policy = RateLimitPolicy("test", window_seconds=60, max_requests=2)
        limiter = RateLimiter(InMemoryCounterStore(), clock=FrozenClock(600.0))

        counts = [(await limiter.hit("actor", policy)).count for _ in range(5)]
        assert counts == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_concurrent_hits_are_counted_exactly(self) -> None:
        policy = RateLimitPolicy("test", window_seconds=3600, max_requests=10)
        limiter = RateLimiter(InMemoryCounterStore(), clock=FrozenClock())

        decisions = await asyncio.gather(*(limiter.admit("actor", policy) for _ in range(25)))
        assert decisions.count(True) == 10
        assert decisions.count(False) == 15


class TestRateLimiterFailures:
    """Tests for enforcement and storage failure handling."""

    @pytest.mark.asyncio
    async def test_enforce_raises_with_retry_after(self) -> None:
        policy = RateLimitPolicy("report", window_seconds=3600, max_requests=1)
        clock = FrozenClock(7200.0 + 600)
        limiter = RateLimiter(InMemoryCounterStore(), clock=clock)

        await limiter.enforce("U1", policy)
        with pytest.raises(RateLimited) as exc_info:
            await limiter.enforce("U1", policy)

        assert exc_info.value.policy == "report"
        assert exc_info.value.retry_after_seconds == 3000
        assert exc_info.value.http_status == 429

    @pytest.mark.asyncio
    async def test_admit_fails_closed_when_store_is_down(self) -> None:
        limiter = RateLimiter(FailingCounterStore(), clock=FrozenClock())
        assert await limiter.admit("U1", report_policy()) is False

    @pytest.mark.asyncio
    async def test_enforce_surfaces_storage_failure(self) -> None:
        limiter = RateLimiter(FailingCounterStore(), clock=FrozenClock())
        with pytest.raises(StorageUnavailable):
            await limiter.enforce("mod-1", moderation_policy())

    def test_policies_come_from_settings(self) -> None:
        assert report_policy().max_requests == 10
        assert report_policy().window_seconds == 3600
        assert moderation_policy().max_requests == 100
