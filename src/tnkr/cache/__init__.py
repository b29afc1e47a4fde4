"""Redis-backed caching.

Learn: Redis plays two roles here:
1. Cache-aside store for read-heavy endpoints (profiles, request lists)
2. Shared state for the real-time message rate limiter

Redis is optional at runtime — every caller degrades gracefully when
it is down (cache miss / fail open). Postgres stays the source of truth.
"""

from tnkr.cache.aside import (
    ONE_HOUR_TTL,
    TEN_MINUTE_TTL,
    cache_key,
    get_cache,
    invalidate_cache,
    read_through,
    set_cache,
)
from tnkr.cache.client import close_redis, get_redis, init_redis

__all__ = [
    "ONE_HOUR_TTL",
    "TEN_MINUTE_TTL",
    "cache_key",
    "close_redis",
    "get_cache",
    "get_redis",
    "init_redis",
    "invalidate_cache",
    "read_through",
    "set_cache",
]
