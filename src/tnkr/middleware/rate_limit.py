"""HTTP rate limiting middleware — Redis fixed-window counter per IP.

Learn: Each IP gets a counter key like "tnkr:rl:{ip}:{bucket}:{minute}".
Credential endpoints (login, register, forgot-password) get a stricter
limit to slow down brute-force and signup spam.

This is separate from the per-user message limiter in
tnkr.realtime.rate_limit, which guards the WebSocket send path.

Skips rate limiting entirely if Redis is unavailable (e.g. in tests).
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tnkr.cache.client import get_redis

logger = structlog.get_logger()

AUTH_PATHS = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/forgot-password",
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_auth = request.url.path.startswith(AUTH_PATHS)
        rpm = self.auth_rpm if is_auth else self.default_rpm

        window = int(time.time() // 60)
        bucket = "auth" if is_auth else "api"
        key = f"tnkr:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception as e:
            # Redis error, let the request through
            logger.warning("http.rate_limiter_unavailable", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("http.rate_limited", ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
