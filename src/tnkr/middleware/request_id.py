"""Request ID middleware — one correlation ID per HTTP request.

Learn: The ID comes from the client's X-Request-ID header when present
(so a mobile app can correlate its own logs) or is generated. It is
bound to structlog's contextvars, so every log line emitted while
handling the request carries request_id, and echoed in the response.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
