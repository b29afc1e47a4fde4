"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
The access token carries the user id (sub) and role, so neither REST
routes nor the WebSocket gateway need a DB hit to know who is calling.
Tokens expire after access_token_expire_minutes (2 hours by default).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from tnkr.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    role: str,
    email: Optional[str] = None,
    username: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a signed access token for a user."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(
        minutes=settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    )
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "exp": expires,
        "iat": now,
    }
    if email:
        payload["email"] = email
    if username:
        payload["username"] = username
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure (bad signature, expired, missing claims).
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != "access" or "role" not in payload:
        raise TokenError("Invalid token: not an access token")
    return payload
