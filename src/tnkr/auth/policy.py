"""Capability-based authorization.

Learn: Each route declares the capability it needs; CAPABILITIES maps
capabilities to the roles that hold them. The check runs once per
request inside a FastAPI dependency, so handlers never compare role
strings themselves.

Some capabilities additionally require a *verified* technician: the
technician must have submitted a profile and an admin must have
approved it. Customers and admins pass that check untouched.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.auth.dependencies import CurrentIdentity, get_current_user
from tnkr.db.engine import get_db
from tnkr.db.models import TechnicianProfile, UserRole
from tnkr.errors import PermissionDenied

_ANY = frozenset(r.value for r in UserRole)

CAPABILITIES: dict[str, frozenset[str]] = {
    "profile:read": _ANY,
    "chat:use": _ANY,
    "request:create": frozenset({UserRole.CUSTOMER.value}),
    "request:read": _ANY,
    "request:browse": frozenset({UserRole.TECHNICIAN.value, UserRole.ADMIN.value}),
    "request:work": frozenset({UserRole.TECHNICIAN.value}),
    "request:moderate": frozenset({UserRole.ADMIN.value}),
    "technician:profile": frozenset({UserRole.TECHNICIAN.value}),
    "technician:review": frozenset({UserRole.ADMIN.value}),
}


def roles_for(capability: str) -> frozenset[str]:
    try:
        return CAPABILITIES[capability]
    except KeyError:
        raise LookupError(f"Unknown capability: {capability}")


def has_capability(identity: CurrentIdentity, capability: str) -> bool:
    return identity.role in roles_for(capability)


def check_capability(
    identity: CurrentIdentity,
    capability: str,
    message: str = "You do not have the required permission level",
) -> None:
    if not has_capability(identity, capability):
        raise PermissionDenied(message)


async def check_verified_technician(
    identity: CurrentIdentity, db: AsyncSession
) -> None:
    """Block technicians whose profile is missing or not yet approved."""
    if identity.role != UserRole.TECHNICIAN.value:
        return

    profile = await db.get(TechnicianProfile, identity.uuid)
    if profile is None:
        raise PermissionDenied(
            "Technician profile not found",
            extra={
                "needsSetup": True,
                "message": "Please complete your technician profile setup first",
            },
        )
    if not profile.is_verified_technician:
        raise PermissionDenied(
            "Technician not verified",
            extra={
                "needsVerification": True,
                "message": (
                    "Your technician profile is under review. "
                    "Please wait for verification."
                ),
            },
        )


def require(capability: str, *, verified_technician: bool = False):
    """Build a dependency that authorizes the caller for `capability`.

    Usage:
        identity: CurrentIdentity = Depends(require("request:work", verified_technician=True))
    """
    roles_for(capability)  # fail fast on typos at import time

    async def dependency(
        identity: CurrentIdentity = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> CurrentIdentity:
        check_capability(identity, capability)
        if verified_technician:
            await check_verified_technician(identity, db)
        return identity

    return dependency
