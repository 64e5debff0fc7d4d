"""Redis connection used by the rate limiter counter store."""

import redis.asyncio as redis

from app.core.config import settings

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


async def close_redis() -> None:
    """Release pooled connections on application shutdown."""
    await redis_client.aclose()
