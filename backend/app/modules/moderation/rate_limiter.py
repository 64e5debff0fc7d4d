"""Fixed-window rate limiting for the report and moderator write paths.

Counters live behind ``CounterStore`` so the limiter holds no global
state: an in-process store for single-worker runs and tests, and a Redis
store whose INCR makes the increment-and-compare atomic across workers.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import log_error, log_warning
from app.core.metrics import RATE_LIMIT_REJECTIONS_TOTAL
from app.modules.moderation.exceptions import RateLimited, StorageUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Window width and request budget for one route class."""
    name: str
    window_seconds: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one call against a policy."""
    allowed: bool
    count: int
    limit: int
    retry_after_seconds: int


def report_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        name="report",
        window_seconds=settings.REPORT_RATE_LIMIT_WINDOW_SECONDS,
        max_requests=settings.REPORT_RATE_LIMIT_MAX_REQUESTS,
    )


def moderation_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        name="moderation",
        window_seconds=settings.MODERATION_RATE_LIMIT_WINDOW_SECONDS,
        max_requests=settings.MODERATION_RATE_LIMIT_MAX_REQUESTS,
    )


class CounterStore(Protocol):
    """Atomic per-window counters."""

    async def increment(self, key: str, window_start: int, window_seconds: int) -> int:
        """Increment the counter of ``key`` in the given window and return it."""
        ...


class InMemoryCounterStore:
    """Counters held in a dict guarded by a lock."""

    def __init__(self):
        self._counters: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    async def increment(self, key: str, window_start: int, window_seconds: int) -> int:
        with self._lock:
            current_window, count = self._counters.get(key, (window_start, 0))
            if current_window != window_start:
                count = 0
            count += 1
            self._counters[key] = (window_start, count)
            return count


class RedisCounterStore:
    """Counters in Redis, one key per (actor key, window)."""

    def __init__(self, client: Redis, prefix: str = "ratelimit"):
        self.client = client
        self.prefix = prefix

    async def increment(self, key: str, window_start: int, window_seconds: int) -> int:
        redis_key = f"{self.prefix}:{key}:{window_start}"
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, window_seconds)
                count, _ = await pipe.execute()
        except RedisError as e:
            raise StorageUnavailable(f"Rate limit store unavailable: {e}") from e
        return int(count)


class RateLimiter:
    """Count calls per actor key against a caller-supplied policy.

    Windows are wall-clock buckets of ``window_seconds``. Every call is
    counted, rejected ones included, so retrying does not help until the
    bucket rolls over.
    """

    def __init__(self, store: CounterStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def hit(self, actor_key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Count one call and decide it.

        Raises:
            StorageUnavailable: If the counter store cannot be reached
        """
        now = self.clock()
        window_start = int(now // policy.window_seconds) * policy.window_seconds
        count = await self.store.increment(
            f"{policy.name}:{actor_key}", window_start, policy.window_seconds
        )
        retry_after = max(1, math.ceil(window_start + policy.window_seconds - now))
        return RateLimitDecision(
            allowed=count <= policy.max_requests,
            count=count,
            limit=policy.max_requests,
            retry_after_seconds=retry_after,
        )

    async def admit(self, actor_key: str, policy: RateLimitPolicy) -> bool:
        """Return whether the call is admitted; storage failures reject."""
        try:
            decision = await self.hit(actor_key, policy)
        except StorageUnavailable as e:
            log_error(logger, "Rate limit store unavailable, rejecting", e, policy=policy.name)
            return False
        return decision.allowed

    async def enforce(self, actor_key: str, policy: RateLimitPolicy) -> None:
        """Count the call and raise if it is over the limit.

        Raises:
            RateLimited: If the window budget is exhausted
            StorageUnavailable: If the counter store cannot be reached
        """
        decision = await self.hit(actor_key, policy)
        if decision.allowed:
            return

        RATE_LIMIT_REJECTIONS_TOTAL.labels(policy=policy.name).inc()
        log_warning(
            logger,
            "Rate limit exceeded",
            policy=policy.name,
            actor_key=actor_key,
            count=decision.count,
            limit=decision.limit,
        )
        raise RateLimited(policy.name, decision.retry_after_seconds)
