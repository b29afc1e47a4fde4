"""Technician API — business profiles and admin verification.

Learn: Routes:
- POST /technicians/profile → submit/edit profile (back to unverified)
- GET /technicians/profile → own profile, verified technicians only (cached 1h)
- GET /technicians/verification-status → where am I in the workflow?
- PUT /technicians/verify/{technicianId} → admin APPROVED/REJECTED
- GET /technicians/pending-verifications → admin review queue
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.auth.dependencies import CurrentIdentity
from tnkr.auth.policy import require
from tnkr.cache import ONE_HOUR_TTL, cache_key, read_through
from tnkr.db.engine import get_db
from tnkr.notifications.mailer import EmailDispatcher, get_email_dispatcher
from tnkr.schemas.technician import (
    PendingTechnicianRead,
    TechnicianProfileRead,
    TechnicianProfileSaved,
    TechnicianProfileUpsert,
    VerificationDecision,
    VerificationDecisionResult,
    VerificationStatus,
)
from tnkr.services.technician_service import (
    APPROVED,
    TECHNICIAN_PROFILE_PAGE,
    TechnicianService,
)

router = APIRouter(prefix="/technicians")


def get_technician_service(
    db: AsyncSession = Depends(get_db),
    emails: EmailDispatcher = Depends(get_email_dispatcher),
) -> TechnicianService:
    return TechnicianService(db, emails=emails)


# ─── Technician side ─────────────────────────────────────


@router.post("/profile", response_model=TechnicianProfileSaved, status_code=201)
async def submit_profile(
    body: TechnicianProfileUpsert,
    identity: CurrentIdentity = Depends(require("technician:profile")),
    technicians: TechnicianService = Depends(get_technician_service),
):
    profile = await technicians.upsert_profile(identity.uuid, body)
    return TechnicianProfileSaved(profile=TechnicianProfileRead.model_validate(profile))


@router.get("/profile")
async def get_profile(
    identity: CurrentIdentity = Depends(
        require("technician:profile", verified_technician=True)
    ),
    technicians: TechnicianService = Depends(get_technician_service),
):
    async def load():
        profile = await technicians.get_profile(identity.uuid)
        return TechnicianProfileRead.model_validate(profile).model_dump(by_alias=True)

    return await read_through(
        cache_key(identity.uuid, TECHNICIAN_PROFILE_PAGE), load, ONE_HOUR_TTL
    )


@router.get("/verification-status", response_model=VerificationStatus)
async def verification_status(
    identity: CurrentIdentity = Depends(require("technician:profile")),
    technicians: TechnicianService = Depends(get_technician_service),
):
    status = await technicians.verification_status(identity.uuid)
    if status.get("profile") is not None:
        status["profile"] = TechnicianProfileRead.model_validate(status["profile"])
    return VerificationStatus(**status)


# ─── Admin side ──────────────────────────────────────────


@router.put("/verify/{technician_id}", response_model=VerificationDecisionResult)
async def verify_technician(
    technician_id: uuid.UUID,
    body: VerificationDecision,
    identity: CurrentIdentity = Depends(require("technician:review")),
    technicians: TechnicianService = Depends(get_technician_service),
):
    await technicians.decide(technician_id, body.status)
    verb = "approved" if body.status == APPROVED else "rejected"
    return VerificationDecisionResult(
        message=f"Technician {verb} successfully", status=body.status
    )


@router.get("/pending-verifications", response_model=list[PendingTechnicianRead])
async def pending_verifications(
    identity: CurrentIdentity = Depends(require("technician:review")),
    technicians: TechnicianService = Depends(get_technician_service),
):
    return await technicians.pending()
