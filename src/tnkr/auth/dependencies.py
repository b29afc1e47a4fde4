"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current identity from the request.

The token may arrive as:
1. Authorization: Bearer <jwt>   (standard)
2. access-token: <jwt>           (header the mobile/web clients send)
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException

from tnkr.auth.jwt import TokenError, verify_token


class CurrentIdentity:
    """The authenticated subject of a request or connection.

    Learn: Built purely from JWT claims — no DB lookup. Anything that
    needs fresh account data (profile, verification state) loads it.
    """

    def __init__(
        self,
        user_id: str,
        role: str,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ):
        self.user_id = user_id
        self.role = role
        self.email = email
        self.username = username

    @property
    def uuid(self) -> uuid.UUID:
        return uuid.UUID(self.user_id)

    def __repr__(self) -> str:
        return f"CurrentIdentity(user_id={self.user_id!r}, role={self.role!r})"


def identity_from_token(token: str) -> CurrentIdentity:
    """Decode a JWT into an identity. Raises TokenError if unusable."""
    payload = verify_token(token)
    try:
        uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise TokenError("Invalid token: malformed subject")
    return CurrentIdentity(
        user_id=str(payload["sub"]),
        role=payload["role"],
        email=payload.get("email"),
        username=payload.get("username"),
    )


def extract_token(
    authorization: Optional[str], access_token: Optional[str]
) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return access_token or None


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth).

    An invalid token is still an error; only a missing one yields None.
    """
    token = extract_token(authorization, access_token)
    if not token:
        return None
    try:
        return identity_from_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
