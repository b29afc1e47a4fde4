"""Service-request service — creation, listings, status machine, deletion.

Learn: A request moves through a small state machine:

  OPEN ──accept──▶ IN_PROGRESS ──complete──▶ COMPLETED
    │                  │
    └──cancel──▶ CANCELLED    └──release──▶ OPEN

Who may fire each transition:
- accept:   a verified technician (becomes the assignee)
- complete: the assignee
- release:  the assignee (hands the job back)
- cancel:   the owner

Listings ("current", "completed") are cached per user for ten minutes,
so every mutation invalidates both listings of everyone it touches:
the owner and the assigned technician(s).
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.auth.dependencies import CurrentIdentity
from tnkr.auth.policy import check_capability, check_verified_technician, has_capability
from tnkr.cache import cache_key, invalidate_cache
from tnkr.db.models import Address, RequestStatus, ServiceRequest
from tnkr.errors import (
    ConflictError,
    DependencyUnavailable,
    NotFoundError,
    PermissionDenied,
    ValidationFailure,
)
from tnkr.storage.s3 import ObjectStorage, StoredFile

logger = structlog.get_logger()

CURRENT_PAGE = "current-requests"
COMPLETED_PAGE = "completed-requests"

ACTIVE_STATUSES = (RequestStatus.OPEN.value, RequestStatus.IN_PROGRESS.value)

REQUEST_TRANSITIONS: dict[str, set[str]] = {
    RequestStatus.OPEN.value: {RequestStatus.IN_PROGRESS.value, RequestStatus.CANCELLED.value},
    RequestStatus.IN_PROGRESS.value: {RequestStatus.COMPLETED.value, RequestStatus.OPEN.value},
    RequestStatus.COMPLETED.value: set(),  # terminal state
    RequestStatus.CANCELLED.value: set(),  # terminal state
}


class InvalidTransitionError(ConflictError):
    """Raised when a status transition is not allowed."""
    pass


def listing_keys(*user_ids: Optional[uuid.UUID]) -> list[str]:
    keys = []
    for user_id in user_ids:
        if user_id is not None:
            keys.append(cache_key(user_id, CURRENT_PAGE))
            keys.append(cache_key(user_id, COMPLETED_PAGE))
    return keys


def parse_subtypes(raw: Optional[str]) -> list[str]:
    """Subtypes arrive as a JSON-encoded list inside a multipart form."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationFailure("subtypes must be a JSON list")
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationFailure("subtypes must be a JSON list of strings")
    return value


class RequestService:
    def __init__(self, db: AsyncSession, storage: Optional[ObjectStorage] = None):
        self.db = db
        self.storage = storage

    # ─── Create ──────────────────────────────────────────

    async def create_request(
        self,
        owner_id: uuid.UUID,
        *,
        job_description: str,
        budget: int,
        shoe_size: float,
        brand: str,
        shoe_name: str,
        service: str,
        street: str,
        city: str,
        state_code: str,
        zip_code: str,
        release_year: Optional[int] = None,
        previously_worked_with: Optional[str] = None,
        subtypes: Optional[list[str]] = None,
        recommended_price: Optional[int] = None,
        pictures: Optional[list[StoredFile]] = None,
    ) -> ServiceRequest:
        """Create the address + request, then upload photos under the request id."""
        request = ServiceRequest(
            user_id=owner_id,
            job_description=job_description,
            budget=budget,
            shoe_size=shoe_size,
            brand=brand,
            shoe_name=shoe_name,
            release_year=release_year,
            previously_worked_with=previously_worked_with,
            service=service,
            subtypes=subtypes or [],
            pictures=[],
            recommended_price=recommended_price,
            address=Address(street=street, city=city, state_code=state_code, zip_code=zip_code),
        )
        self.db.add(request)
        await self.db.flush()  # get the id for the photo keys
        request_id = str(request.id)

        if pictures:
            try:
                request.pictures = list(
                    await asyncio.gather(
                        *(
                            self.storage.upload_request_photo(p, str(owner_id), request_id)
                            for p in pictures
                        )
                    )
                )
            except (BotoCoreError, ClientError) as e:
                await self.db.rollback()
                logger.error("requests.photo_upload_failed", error=str(e))
                await self.storage.delete_request_photos(request_id)
                raise DependencyUnavailable("Failed to upload request photos")

        await self.db.commit()
        await invalidate_cache(*listing_keys(owner_id))
        logger.info("requests.created", request_id=request_id, photos=len(request.pictures))
        return request

    # ─── Read ────────────────────────────────────────────

    def _scope(self, identity: CurrentIdentity):
        if has_capability(identity, "request:work"):
            return ServiceRequest.technician_id == identity.uuid
        return ServiceRequest.user_id == identity.uuid

    async def list_current(self, identity: CurrentIdentity) -> list[ServiceRequest]:
        """Open + in-progress requests the caller owns (or works on)."""
        result = await self.db.execute(
            select(ServiceRequest)
            .where(self._scope(identity), ServiceRequest.status.in_(ACTIVE_STATUSES))
            .order_by(ServiceRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_completed(self, identity: CurrentIdentity) -> list[ServiceRequest]:
        result = await self.db.execute(
            select(ServiceRequest)
            .where(
                self._scope(identity),
                ServiceRequest.status == RequestStatus.COMPLETED.value,
            )
            .order_by(ServiceRequest.completed_at.desc())
        )
        return list(result.scalars().all())

    async def list_open(self) -> list[ServiceRequest]:
        """Unassigned open requests — the technicians' job board."""
        result = await self.db.execute(
            select(ServiceRequest)
            .where(
                ServiceRequest.status == RequestStatus.OPEN.value,
                ServiceRequest.technician_id.is_(None),
            )
            .order_by(ServiceRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def _load(self, request_id: uuid.UUID) -> ServiceRequest:
        request = await self.db.get(ServiceRequest, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    async def get_request(self, identity: CurrentIdentity, request_id: uuid.UUID) -> ServiceRequest:
        request = await self._load(request_id)
        allowed = (
            has_capability(identity, "request:moderate")
            or request.user_id == identity.uuid
            or request.technician_id == identity.uuid
            or (
                has_capability(identity, "request:work")
                and request.status == RequestStatus.OPEN.value
            )
        )
        if not allowed:
            raise PermissionDenied("You do not have access to this request")
        return request

    # ─── Status machine ──────────────────────────────────

    async def change_status(
        self, identity: CurrentIdentity, request_id: uuid.UUID, new_status: str
    ) -> ServiceRequest:
        """Fire one transition as a compare-and-set on the row.

        Learn: The permission checks read the row first, but the write is an
        UPDATE guarded by the status (and assignee) that was read. If another
        writer got there in between (two technicians accepting the same
        job) the guard matches no row and the loser gets a 409 instead of
        silently overwriting the winner.
        """
        request = await self._load(request_id)
        old_status = request.status
        previous_technician = request.technician_id

        if new_status not in REQUEST_TRANSITIONS.get(old_status, set()):
            raise InvalidTransitionError(
                f"Cannot move request from {old_status} to {new_status}"
            )

        guard = [ServiceRequest.id == request_id, ServiceRequest.status == old_status]
        values: dict = {"status": new_status}

        if new_status == RequestStatus.IN_PROGRESS.value:
            check_capability(identity, "request:work", "Only technicians can accept requests")
            await check_verified_technician(identity, self.db)
            guard.append(ServiceRequest.technician_id.is_(None))
            values["technician_id"] = identity.uuid
        elif new_status == RequestStatus.CANCELLED.value:
            if request.user_id != identity.uuid:
                raise PermissionDenied("Only the owner can cancel a request")
        else:
            # COMPLETED or released back to OPEN: assignee only
            if request.technician_id != identity.uuid:
                raise PermissionDenied("Only the assigned technician can do this")
            guard.append(ServiceRequest.technician_id == identity.uuid)
            if new_status == RequestStatus.COMPLETED.value:
                values["completed_at"] = datetime.now(timezone.utc)
            else:
                values["technician_id"] = None

        result = await self.db.execute(
            update(ServiceRequest)
            .where(*guard)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.info(
                "requests.status_conflict",
                request_id=str(request_id),
                expected=old_status,
                wanted=new_status,
                actor=identity.user_id,
            )
            raise InvalidTransitionError("Request was changed by someone else, reload it")

        await self.db.commit()
        await self.db.refresh(request)
        await invalidate_cache(
            *listing_keys(request.user_id, previous_technician, request.technician_id)
        )
        logger.info(
            "requests.status_changed",
            request_id=str(request_id),
            old=old_status,
            new=new_status,
            actor=identity.user_id,
        )
        return request

    # ─── Delete ──────────────────────────────────────────

    async def delete_request(self, identity: CurrentIdentity, request_id: uuid.UUID) -> None:
        request = await self._load(request_id)
        if request.user_id != identity.uuid and not has_capability(identity, "request:moderate"):
            raise PermissionDenied("Only the owner can delete a request")

        owner_id, technician_id = request.user_id, request.technician_id
        address = request.address
        await self.db.delete(request)
        await self.db.delete(address)
        await self.db.commit()

        # Best effort; the row is already gone
        await self.storage.delete_request_photos(str(request_id))
        await invalidate_cache(*listing_keys(owner_id, technician_id))
        logger.info("requests.deleted", request_id=str(request_id))
