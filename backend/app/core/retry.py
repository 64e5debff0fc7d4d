"""Retry helpers with exponential backoff."""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 300.0,
        backoff_multiplier: float = 2.0,
    ):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt using exponential backoff.

        Args:
            attempt: The current attempt number (1-indexed).

        Returns:
            The delay in seconds, capped at max_delay.
        """
        if attempt < 1:
            return self.initial_delay

        delay = self.initial_delay * math.pow(self.backoff_multiplier, attempt - 1)
        return min(delay, self.max_delay)


class RetryExhausted(Exception):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """Run an async operation, retrying failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory
        config: Attempt count and delay settings
        retry_on: Exception types that trigger a retry
        on_retry: Called with (attempt, error) before each sleep

    Returns:
        The operation's result

    Raises:
        RetryExhausted: If all attempts failed
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= config.max_attempts:
                raise RetryExhausted(attempt, exc) from exc
            if on_retry is not None:
                on_retry(attempt, exc)
            delay = config.calculate_delay(attempt)
            logger.debug("Retrying after %.3fs (attempt %d): %s", delay, attempt, exc)
            await asyncio.sleep(delay)
