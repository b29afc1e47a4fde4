"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic auto-generates migrations by comparing these models to the actual DB.

Key concepts:
- UUID primary keys (portable Uuid type: native on PostgreSQL, CHAR(32) on SQLite)
- JSON columns for list-valued fields, upgraded to JSONB on PostgreSQL
- Python-side defaults for timestamps so objects are complete right after
  flush, without a refresh round-trip (matters for async sessions)
- Relationships that API responses need are eagerly loaded (lazy="selectin");
  async sessions cannot lazy-load on attribute access
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


JsonList = JSON().with_variant(JSONB(), "postgresql")


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    TECHNICIAN = "TECHNICIAN"
    ADMIN = "ADMIN"


class TokenType(str, enum.Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


class RequestStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# ══════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A customer, technician or admin account.

    Learn: Accounts start unverified. Login is refused until the email
    verification link has been followed.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.CUSTOMER.value
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    profile_picture_url: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class VerificationToken(Base):
    """One-time code for email verification or password reset."""

    __tablename__ = "verification_tokens"
    __table_args__ = (Index("idx_verification_tokens_email", "email"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


# ══════════════════════════════════════════════════════════════
# Service requests
# ══════════════════════════════════════════════════════════════


class Address(Base):
    """Pickup address attached to a service request."""

    __tablename__ = "addresses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state_code: Mapped[str] = mapped_column(String(10), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)


class ServiceRequest(Base):
    """A customer's request for cleaning/repair work on a pair of shoes.

    Learn: status follows REQUEST_TRANSITIONS in request_service.
    technician_id is set when a verified technician accepts the job.
    """

    __tablename__ = "service_requests"
    __table_args__ = (
        Index("idx_service_requests_owner_status", "user_id", "status"),
        Index("idx_service_requests_technician_status", "technician_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    technician_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    address_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("addresses.id"), nullable=False
    )
    job_description: Mapped[str] = mapped_column(Text, nullable=False)
    budget: Mapped[int] = mapped_column(Integer, nullable=False)
    shoe_size: Mapped[float] = mapped_column(Float, nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    shoe_name: Mapped[str] = mapped_column(String(200), nullable=False)
    release_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    previously_worked_with: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True
    )
    service: Mapped[str] = mapped_column(String(100), nullable=False)
    subtypes: Mapped[list] = mapped_column(JsonList, nullable=False, default=list)
    pictures: Mapped[list] = mapped_column(JsonList, nullable=False, default=list)
    recommended_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.OPEN.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    address: Mapped["Address"] = relationship(lazy="selectin")


# ══════════════════════════════════════════════════════════════
# Technician verification
# ══════════════════════════════════════════════════════════════


class TechnicianProfile(Base):
    """Business profile a technician submits for admin review.

    Learn: Every create/update resets is_verified_technician to False —
    an admin has to approve the profile again before the technician can
    work requests.
    """

    __tablename__ = "technician_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    services_provided: Mapped[list] = mapped_column(JsonList, nullable=False, default=list)
    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    business_registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    incorp_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    website_link: Mapped[str] = mapped_column(String(500), nullable=False)
    social_media_link: Mapped[list] = mapped_column(JsonList, nullable=False, default=list)
    bio: Mapped[str] = mapped_column(Text, nullable=False)
    is_verified_technician: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship(lazy="selectin")
    address: Mapped[Optional["TechnicianAddress"]] = relationship(
        lazy="selectin", uselist=False, cascade="all, delete-orphan"
    )


class TechnicianAddress(Base):
    __tablename__ = "technician_addresses"

    technician_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("technician_profiles.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state_code: Mapped[str] = mapped_column(String(10), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)


# ══════════════════════════════════════════════════════════════
# Direct messaging
# ══════════════════════════════════════════════════════════════


class Message(Base):
    """Direct message between two users.

    Learn: Messages are immutable — created only by the real-time send
    path, never edited. sender/receiver are eagerly loaded because every
    read (history, push, ack) includes their display projection.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_pair_created", "sender_id", "receiver_id", "created_at"),
        Index("idx_messages_receiver", "receiver_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    # Relationships
    sender: Mapped["User"] = relationship(foreign_keys=[sender_id], lazy="selectin")
    receiver: Mapped["User"] = relationship(foreign_keys=[receiver_id], lazy="selectin")
