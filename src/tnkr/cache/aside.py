"""Cache-aside helpers for read-heavy endpoints.

Learn: The application (not Redis) owns the cache:
- Reads go through read_through(): hit → return cached JSON, skip the DB;
  miss → run the loader, store the result with a TTL, return it.
- Writes call invalidate_cache() after their commit and before
  responding, so the next read reloads from Postgres.

Nothing checks a cached value against the DB. Correctness depends on
every mutating endpoint invalidating the keys it affects; the TTL only
bounds how long a missed invalidation can hurt.

Cache failures never fail a request: a broken GET is a miss, a broken
SET is skipped, a broken DELETE is logged.
"""

import json
from typing import Any, Awaitable, Callable, Optional

import structlog
from fastapi.encoders import jsonable_encoder

from tnkr.cache.client import get_redis

logger = structlog.get_logger()

ONE_HOUR_TTL = 60 * 60
TEN_MINUTE_TTL = 60 * 10


def cache_key(user_id: Any, page: str) -> str:
    """Deterministic key for one user's view of one page: "{page}:{user_id}"."""
    return f"{page}:{user_id}"


async def get_cache(key: str) -> Optional[Any]:
    """Return the decoded cached value, or None on miss or cache failure."""
    try:
        raw = await get_redis().get(key)
        return json.loads(raw) if raw is not None else None
    except Exception as e:
        logger.warning("cache.get_failed", key=key, error=str(e))
        return None


async def set_cache(key: str, data: Any, ttl: int) -> bool:
    """Store JSON-encoded data under key with a TTL. Returns False if skipped."""
    try:
        await get_redis().set(key, json.dumps(data), ex=ttl)
        return True
    except Exception as e:
        logger.warning("cache.set_failed", key=key, error=str(e))
        return False


async def invalidate_cache(*keys: str) -> None:
    """Unconditionally delete keys. Call after the write has committed."""
    if not keys:
        return
    try:
        await get_redis().delete(*keys)
    except Exception as e:
        # TTL still bounds staleness; the write itself already succeeded.
        logger.error("cache.invalidate_failed", keys=list(keys), error=str(e))


async def read_through(
    key: str,
    loader: Callable[[], Awaitable[Any]],
    ttl: int,
) -> Any:
    """Return the cached value for key, loading and caching it on a miss.

    The loader's result is run through jsonable_encoder first, so a hit
    and a miss hand back exactly the same shape (plain JSON types).
    """
    cached = await get_cache(key)
    if cached is not None:
        logger.debug("cache.hit", key=key)
        return cached

    data = jsonable_encoder(await loader())
    await set_cache(key, data, ttl)
    return data
