"""Redis connection pool — shared by the cache and the rate limiter.

Learn: One pool per process, created in the FastAPI lifespan. Code that
needs Redis calls get_redis(), which raises RuntimeError when the pool
was never initialized (e.g. Redis was down at startup). Callers treat
that the same as any other Redis failure.
"""

from typing import Optional

import redis.asyncio as aioredis

from tnkr.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    _redis = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
