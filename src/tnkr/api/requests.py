"""Service request API — customers post jobs, technicians work them.

Learn: Routes:
- POST /requests → multipart form + pictures[] → new OPEN request
- GET /requests/current → caller's open/in-progress requests (cached 10 min)
- GET /requests/completed → caller's completed requests (cached 10 min)
- GET /requests/open → job board for verified technicians
- GET /requests/{id} → one request
- PATCH /requests/{id}/status → state machine transition
- DELETE /requests/{id} → remove request and its photos

"Caller's" means owned for customers and assigned for technicians.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.auth.dependencies import CurrentIdentity
from tnkr.auth.policy import require
from tnkr.cache import TEN_MINUTE_TTL, cache_key, read_through
from tnkr.db.engine import get_db
from tnkr.schemas.common import MessageResponse
from tnkr.schemas.request import ServiceRequestCreated, ServiceRequestRead, StatusChange
from tnkr.services.request_service import (
    COMPLETED_PAGE,
    CURRENT_PAGE,
    RequestService,
    parse_subtypes,
)
from tnkr.storage.s3 import ObjectStorage, from_upload, get_storage

router = APIRouter(prefix="/requests")


def get_request_service(
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> RequestService:
    return RequestService(db, storage=storage)


def _dump(requests) -> list[dict]:
    return [ServiceRequestRead.model_validate(r).model_dump(by_alias=True) for r in requests]


# ─── Create ──────────────────────────────────────────────


@router.post("", response_model=ServiceRequestCreated, status_code=201)
async def create_request(
    job_description: str = Form(..., alias="jobDescription", min_length=1),
    budget: int = Form(..., ge=0),
    shoe_size: float = Form(..., alias="shoeSize", gt=0),
    brand: str = Form(..., min_length=1),
    shoe_name: str = Form(..., alias="shoeName", min_length=1),
    service: str = Form(..., min_length=1),
    street: str = Form(..., min_length=1),
    city: str = Form(..., min_length=1),
    state_code: str = Form(..., alias="stateCode", min_length=1),
    zip_code: str = Form(..., alias="zipCode", min_length=1),
    release_year: Optional[int] = Form(None, alias="releaseYear"),
    previously_worked_with: Optional[str] = Form(None, alias="previouslyWorkedWith"),
    subtypes: Optional[str] = Form(None),
    recommended_price: Optional[int] = Form(None, alias="recommendedPrice"),
    pictures: Optional[list[UploadFile]] = File(None),
    identity: CurrentIdentity = Depends(require("request:create")),
    requests: RequestService = Depends(get_request_service),
):
    """Create a request; photos upload under the new request's id."""
    stored = [await from_upload(p) for p in pictures or [] if p.filename]
    request = await requests.create_request(
        identity.uuid,
        job_description=job_description,
        budget=budget,
        shoe_size=shoe_size,
        brand=brand,
        shoe_name=shoe_name,
        service=service,
        street=street,
        city=city,
        state_code=state_code,
        zip_code=zip_code,
        release_year=release_year,
        previously_worked_with=previously_worked_with,
        subtypes=parse_subtypes(subtypes),
        recommended_price=recommended_price,
        pictures=stored,
    )
    return ServiceRequestCreated(request=ServiceRequestRead.model_validate(request))


# ─── Listings ────────────────────────────────────────────


@router.get("/current")
async def current_requests(
    identity: CurrentIdentity = Depends(require("request:read")),
    requests: RequestService = Depends(get_request_service),
):
    async def load():
        return _dump(await requests.list_current(identity))

    return await read_through(cache_key(identity.uuid, CURRENT_PAGE), load, TEN_MINUTE_TTL)


@router.get("/completed")
async def completed_requests(
    identity: CurrentIdentity = Depends(require("request:read")),
    requests: RequestService = Depends(get_request_service),
):
    async def load():
        return _dump(await requests.list_completed(identity))

    return await read_through(cache_key(identity.uuid, COMPLETED_PAGE), load, TEN_MINUTE_TTL)


@router.get("/open", response_model=list[ServiceRequestRead])
async def open_requests(
    identity: CurrentIdentity = Depends(require("request:browse", verified_technician=True)),
    requests: RequestService = Depends(get_request_service),
):
    """Not cached: the board changes whenever anyone posts or accepts."""
    return await requests.list_open()


# ─── Single request ──────────────────────────────────────


@router.get("/{request_id}", response_model=ServiceRequestRead)
async def get_request(
    request_id: uuid.UUID,
    identity: CurrentIdentity = Depends(require("request:read")),
    requests: RequestService = Depends(get_request_service),
):
    return await requests.get_request(identity, request_id)


@router.patch("/{request_id}/status", response_model=ServiceRequestRead)
async def change_status(
    request_id: uuid.UUID,
    body: StatusChange,
    identity: CurrentIdentity = Depends(require("request:read")),
    requests: RequestService = Depends(get_request_service),
):
    """Fire one state-machine transition. 409 if it isn't allowed."""
    return await requests.change_status(identity, request_id, body.status)


@router.delete("/{request_id}", response_model=MessageResponse)
async def delete_request(
    request_id: uuid.UUID,
    identity: CurrentIdentity = Depends(require("request:read")),
    requests: RequestService = Depends(get_request_service),
):
    await requests.delete_request(identity, request_id)
    return MessageResponse(message="Request deleted successfully")
