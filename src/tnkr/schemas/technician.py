"""Pydantic schemas for technician profiles and the verification workflow."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from tnkr.schemas.common import CamelModel
from tnkr.schemas.request import AddressRead


class TechnicianAddressIn(CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state_code: str = Field(..., min_length=1, max_length=10)
    zip_code: str = Field(..., min_length=1, max_length=20)


class TechnicianProfileUpsert(CamelModel):
    """Body for POST /technicians/profile.

    Required fields are Optional here on purpose: the route reports every
    missing one at once ("required": [...]) instead of pydantic's 422.
    """
    services_provided: Optional[list[str]] = None
    business_name: Optional[str] = None
    business_registered: bool = False
    incorp_number: Optional[str] = None
    website_link: Optional[str] = None
    social_media_link: list[str] = Field(default_factory=list)
    bio: Optional[str] = None
    address: Optional[TechnicianAddressIn] = None


class ApplicantRead(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    created_at: datetime


class TechnicianProfileRead(CamelModel):
    user_id: uuid.UUID
    services_provided: list[str]
    business_name: str
    business_registered: bool
    incorp_number: Optional[str] = None
    website_link: str
    social_media_link: list[str]
    bio: str
    is_verified_technician: bool
    address: Optional[AddressRead] = None
    created_at: datetime
    updated_at: datetime


class PendingTechnicianRead(TechnicianProfileRead):
    user: ApplicantRead


class TechnicianProfileSaved(CamelModel):
    message: str = "Technician profile created successfully"
    profile: TechnicianProfileRead
    needs_verification: bool = True


class VerificationStatus(CamelModel):
    has_profile: bool
    is_verified: bool
    needs_setup: bool = False
    needs_verification: bool = False
    can_access_dashboard: bool = False
    message: Optional[str] = None
    profile: Optional[TechnicianProfileRead] = None


class VerificationDecision(CamelModel):
    status: str = Field(..., pattern=r"^(APPROVED|REJECTED)$")


class VerificationDecisionResult(CamelModel):
    message: str
    status: str
