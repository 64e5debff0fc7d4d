"""Property-based tests for exponential backoff retries."""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from app.core.retry import RetryConfig, RetryExhausted, retry_async


class TestRetryConfig:
    """Tests for ``RetryConfig.calculate_delay``."""

    @given(
        initial=st.floats(min_value=0.01, max_value=10),
        multiplier=st.floats(min_value=1, max_value=4),
        max_delay=st.floats(min_value=0.01, max_value=600),
        attempt=st.integers(min_value=1, max_value=30),
    )
    @settings(max_examples=100)
    def test_delay_is_capped_and_non_decreasing(
        self, initial: float, multiplier: float, max_delay: float, attempt: int
    ) -> None:
        """Delays SHALL never exceed max_delay and SHALL never shrink."""
        config = RetryConfig(
            initial_delay=initial, max_delay=max_delay, backoff_multiplier=multiplier
        )
        assert config.calculate_delay(attempt) <= max_delay
        assert config.calculate_delay(attempt) <= config.calculate_delay(attempt + 1)

    def test_exponential_sequence(self) -> None:
        config = RetryConfig(initial_delay=1.0, max_delay=10.0)
        assert [config.calculate_delay(a) for a in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]


class TestRetryAsync:
    """Tests for ``retry_async``."""

    @given(failures=st.integers(min_value=0, max_value=4), max_attempts=st.integers(min_value=1, max_value=5))
    @settings(max_examples=100)
    def test_succeeds_iff_failures_fit_in_attempts(self, failures: int, max_attempts: int) -> None:
        calls = []
        retries = []

        async def operation():
            calls.append(1)
            if len(calls) <= failures:
                raise ConnectionError("down")
            return "ok"

        async def run():
            return await retry_async(
                operation,
                RetryConfig(max_attempts=max_attempts, initial_delay=0, max_delay=0),
                retry_on=(ConnectionError,),
                on_retry=lambda attempt, error: retries.append(attempt),
            )

        if failures < max_attempts:
            assert asyncio.run(run()) == "ok"
            assert len(calls) == failures + 1
            assert retries == list(range(1, failures + 1))
        else:
            with pytest.raises(RetryExhausted) as exc_info:
                asyncio.run(run())
            assert exc_info.value.attempts == max_attempts
            assert isinstance(exc_info.value.last_error, ConnectionError)
            assert len(retries) == max_attempts - 1

    @pytest.mark.asyncio
    async def test_unlisted_errors_propagate_immediately(self) -> None:
        calls = []

        async def operation():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await retry_async(
                operation,
                RetryConfig(max_attempts=5, initial_delay=0),
                retry_on=(ConnectionError,),
            )
        assert len(calls) == 1
