"""Pydantic schemas for service requests."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from tnkr.schemas.common import CamelModel


class AddressRead(CamelModel):
    street: str
    city: str
    state_code: str
    zip_code: str


class ServiceRequestRead(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    technician_id: Optional[uuid.UUID] = None
    job_description: str
    budget: int
    shoe_size: float
    brand: str
    shoe_name: str
    release_year: Optional[int] = None
    previously_worked_with: Optional[str] = None
    service: str
    subtypes: list[str]
    pictures: list[str]
    recommended_price: Optional[int] = None
    status: str
    address: AddressRead
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class ServiceRequestCreated(CamelModel):
    message: str = "Request created successfully"
    request: ServiceRequestRead


class StatusChange(CamelModel):
    """Request to change request status. Validated by the state machine."""
    status: str = Field(..., pattern=r"^(OPEN|IN_PROGRESS|COMPLETED|CANCELLED)$")
