"""Service-level error taxonomy.

Learn: Services raise these instead of HTTPException so the same
business logic can back REST routes and the WebSocket gateway.
main.py registers one exception handler that maps each kind to its
HTTP status; the gateway maps them to ack error codes instead.

Dependency failures (cache, email, object storage cleanup) are NOT
part of this taxonomy — they are logged and degrade gracefully.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400
    code = "error"

    def __init__(self, message: str, extra: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class AuthenticationError(ServiceError):
    status_code = 401
    code = "unauthenticated"


class PermissionDenied(ServiceError):
    status_code = 403
    code = "forbidden"


class ValidationFailure(ServiceError):
    status_code = 400
    code = "validation_error"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class ConflictError(ServiceError):
    status_code = 409
    code = "conflict"


class RateLimitedError(ServiceError):
    """Transient — the caller should back off and retry later."""

    status_code = 429
    code = "rate_limited"


class DependencyUnavailable(ServiceError):
    """A collaborator the operation cannot complete without is down.

    Only raised where the dependency is on the primary path (uploading
    the photos a request is being created with). Cleanup and
    notification failures are logged instead.
    """

    status_code = 503
    code = "dependency_failure"
