"""Technician service — profile submission and the admin verification workflow.

Learn: The verification workflow:
1. Technician submits (or edits) their business profile → unverified
2. Admin lists pending profiles and approves or rejects each one
3. Technician is emailed the decision (background task)
4. Only approved technicians pass check_verified_technician() and can
   browse/accept requests

Editing a profile always drops it back to unverified — an admin must
re-approve changed business details.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.cache import cache_key, invalidate_cache
from tnkr.db.models import TechnicianAddress, TechnicianProfile, User
from tnkr.errors import NotFoundError, ValidationFailure
from tnkr.notifications.mailer import EmailDispatcher, technician_decision_email
from tnkr.schemas.technician import TechnicianProfileUpsert

logger = structlog.get_logger()

TECHNICIAN_PROFILE_PAGE = "technician-profile"

REQUIRED_PROFILE_FIELDS = (
    "servicesProvided",
    "businessName",
    "websiteLink",
    "bio",
    "address",
)

APPROVED = "APPROVED"
REJECTED = "REJECTED"


class TechnicianService:
    def __init__(self, db: AsyncSession, emails: Optional[EmailDispatcher] = None):
        self.db = db
        self.emails = emails

    async def find_profile(self, user_id: uuid.UUID) -> Optional[TechnicianProfile]:
        return await self.db.get(TechnicianProfile, user_id)

    async def get_profile(self, user_id: uuid.UUID) -> TechnicianProfile:
        profile = await self.find_profile(user_id)
        if profile is None:
            raise NotFoundError("Technician profile not found", extra={"needsSetup": True})
        return profile

    # ─── Submit / edit ───────────────────────────────────

    async def upsert_profile(
        self, user_id: uuid.UUID, body: TechnicianProfileUpsert
    ) -> TechnicianProfile:
        missing = [
            alias
            for alias, value in zip(
                REQUIRED_PROFILE_FIELDS,
                (body.services_provided, body.business_name, body.website_link, body.bio, body.address),
            )
            if not value
        ]
        if missing:
            raise ValidationFailure(
                "Missing required fields",
                extra={"required": list(REQUIRED_PROFILE_FIELDS), "missing": missing},
            )

        fields = {
            "services_provided": body.services_provided,
            "business_name": body.business_name,
            "business_registered": body.business_registered,
            "incorp_number": body.incorp_number,
            "website_link": body.website_link,
            "social_media_link": body.social_media_link,
            "bio": body.bio,
            "is_verified_technician": False,  # re-reviewed by an admin
        }
        address = body.address.model_dump()

        profile = await self.find_profile(user_id)
        if profile is None:
            profile = TechnicianProfile(
                user_id=user_id, address=TechnicianAddress(**address), **fields
            )
            self.db.add(profile)
        else:
            for name, value in fields.items():
                setattr(profile, name, value)
            if profile.address is None:
                profile.address = TechnicianAddress(**address)
            else:
                for name, value in address.items():
                    setattr(profile.address, name, value)

        await self.db.commit()
        await invalidate_cache(cache_key(user_id, TECHNICIAN_PROFILE_PAGE))
        logger.info("technicians.profile_submitted", user_id=str(user_id))
        return profile

    async def verification_status(self, user_id: uuid.UUID) -> dict:
        profile = await self.find_profile(user_id)
        if profile is None:
            return {
                "has_profile": False,
                "is_verified": False,
                "needs_setup": True,
                "message": "Please complete your technician profile to access the dashboard",
            }
        if not profile.is_verified_technician:
            return {
                "has_profile": True,
                "is_verified": False,
                "needs_verification": True,
                "message": "Your profile is under review. You'll be notified once verified.",
            }
        return {
            "has_profile": True,
            "is_verified": True,
            "can_access_dashboard": True,
            "profile": profile,
        }

    # ─── Admin review ────────────────────────────────────

    async def pending(self) -> list[TechnicianProfile]:
        result = await self.db.execute(
            select(TechnicianProfile)
            .where(TechnicianProfile.is_verified_technician.is_(False))
            .order_by(TechnicianProfile.created_at.asc())
        )
        return list(result.scalars().all())

    async def decide(self, technician_id: uuid.UUID, status: str) -> TechnicianProfile:
        """Approve or reject a technician and email them the outcome."""
        if status not in (APPROVED, REJECTED):
            raise ValidationFailure("status must be APPROVED or REJECTED")

        profile = await self.get_profile(technician_id)
        user = await self.db.get(User, technician_id)
        profile.is_verified_technician = status == APPROVED
        await self.db.commit()
        await invalidate_cache(cache_key(technician_id, TECHNICIAN_PROFILE_PAGE))

        if user is not None:
            self.emails.dispatch(
                technician_decision_email(user.email, user.first_name, status == APPROVED)
            )
        logger.info("technicians.reviewed", technician_id=str(technician_id), status=status)
        return profile
