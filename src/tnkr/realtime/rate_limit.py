"""Per-sender message rate limiter — Redis-backed sliding window.

Learn: For each sender we store a JSON list of recent send timestamps
under "ratelimit:messages:{user_id}". On every attempt:

1. Drop timestamps older than now - window (filtering, not a cron purge)
2. If what's left already reaches the limit → reject, write nothing
3. Otherwise append now, write the *filtered* list back, reset the
   key's expiry to the window length

The read and the write run inside a WATCH/MULTI transaction. If another
connection of the same sender writes the key in between, EXEC fails
with WatchError and the attempt starts over from a fresh read, so
concurrent sends can never push the count past the limit.

Because the window slides with every check there is no fixed bucket
boundary to burst across (unlike the per-minute HTTP limiter in
middleware/rate_limit.py).

The state lives in Redis, so it survives process restarts and is shared
by all of a user's connections. If Redis is unavailable the limiter
fails open: a cache outage must never block messaging.
"""

import json
import time
from typing import Callable, Optional

import structlog
from redis.exceptions import WatchError

from tnkr.cache.client import get_redis
from tnkr.config import settings

logger = structlog.get_logger()


class MessageRateLimiter:
    """Sliding-window limiter: at most `limit` sends per `window_seconds`."""

    def __init__(
        self,
        limit: Optional[int] = None,
        window_seconds: Optional[int] = None,
        redis_getter: Callable = get_redis,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = settings.message_rate_limit if limit is None else limit
        self.window_seconds = (
            settings.message_rate_window_seconds if window_seconds is None else window_seconds
        )
        self._redis = redis_getter
        self._clock = clock

    @staticmethod
    def key(user_id: str) -> str:
        return f"ratelimit:messages:{user_id}"

    async def check_and_record(self, user_id: str) -> bool:
        """True if the send may proceed (and is now counted)."""
        key = self.key(user_id)

        try:
            redis = self._redis()
            async with redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        return await self._attempt(pipe, key, user_id)
                    except WatchError:
                        # Another connection of this sender wrote first
                        logger.debug("messaging.rate_limit_retry", user_id=user_id)
        except Exception as e:
            # Fail open
            logger.warning("messaging.rate_limiter_unavailable", user_id=user_id, error=str(e))
            return True

    async def _attempt(self, pipe, key: str, user_id: str) -> bool:
        """One optimistic round: WATCH, read, decide, then MULTI/EXEC the append.

        EXEC raises WatchError if the key changed after WATCH, so two
        concurrent sends can never both append to the same snapshot.
        """
        await pipe.watch(key)
        now = self._clock()
        window_start = now - self.window_seconds

        raw = await pipe.get(key)
        stamps = json.loads(raw) if raw else []
        if not isinstance(stamps, list):
            stamps = []
        recent = [t for t in stamps if isinstance(t, (int, float)) and t >= window_start]

        if len(recent) >= self.limit:
            await pipe.unwatch()
            logger.info("messaging.rate_limited", user_id=user_id, count=len(recent))
            return False

        recent.append(now)
        pipe.multi()
        pipe.set(key, json.dumps(recent), ex=self.window_seconds)
        await pipe.execute()
        return True
