"""Initial schema: accounts, service requests, technician profiles, messages

Revision ID: 3f1c9a2d7b10
Revises:
Create Date: 2026-10-18 09:12:44.102311
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

json_list = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("profile_picture_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("username"),
    )
    op.create_table(
        "verification_tokens",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("idx_verification_tokens_email", "verification_tokens", ["email"])
    op.create_table(
        "addresses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("street", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("state_code", sa.String(length=10), nullable=False),
        sa.Column("zip_code", sa.String(length=20), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "service_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("technician_id", sa.Uuid(), nullable=True),
        sa.Column("address_id", sa.Uuid(), nullable=False),
        sa.Column("job_description", sa.Text(), nullable=False),
        sa.Column("budget", sa.Integer(), nullable=False),
        sa.Column("shoe_size", sa.Float(), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=False),
        sa.Column("shoe_name", sa.String(length=200), nullable=False),
        sa.Column("release_year", sa.Integer(), nullable=True),
        sa.Column("previously_worked_with", sa.String(length=20), nullable=True),
        sa.Column("service", sa.String(length=100), nullable=False),
        sa.Column("subtypes", json_list, nullable=False),
        sa.Column("pictures", json_list, nullable=False),
        sa.Column("recommended_price", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["technician_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["address_id"], ["addresses.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_service_requests_owner_status", "service_requests", ["user_id", "status"]
    )
    op.create_index(
        "idx_service_requests_technician_status",
        "service_requests",
        ["technician_id", "status"],
    )
    op.create_table(
        "technician_profiles",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("services_provided", json_list, nullable=False),
        sa.Column("business_name", sa.String(length=200), nullable=False),
        sa.Column("business_registered", sa.Boolean(), nullable=False),
        sa.Column("incorp_number", sa.String(length=100), nullable=True),
        sa.Column("website_link", sa.String(length=500), nullable=False),
        sa.Column("social_media_link", json_list, nullable=False),
        sa.Column("bio", sa.Text(), nullable=False),
        sa.Column("is_verified_technician", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_table(
        "technician_addresses",
        sa.Column("technician_profile_id", sa.Uuid(), nullable=False),
        sa.Column("street", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("state_code", sa.String(length=10), nullable=False),
        sa.Column("zip_code", sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(
            ["technician_profile_id"],
            ["technician_profiles.user_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("technician_profile_id"),
    )
    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("receiver_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_messages_pair_created",
        "messages",
        ["sender_id", "receiver_id", "created_at"],
    )
    op.create_index("idx_messages_receiver", "messages", ["receiver_id"])


def downgrade() -> None:
    op.drop_index("idx_messages_receiver", table_name="messages")
    op.drop_index("idx_messages_pair_created", table_name="messages")
    op.drop_table("messages")
    op.drop_table("technician_addresses")
    op.drop_table("technician_profiles")
    op.drop_index("idx_service_requests_technician_status", table_name="service_requests")
    op.drop_index("idx_service_requests_owner_status", table_name="service_requests")
    op.drop_table("service_requests")
    op.drop_table("addresses")
    op.drop_index("idx_verification_tokens_email", table_name="verification_tokens")
    op.drop_table("verification_tokens")
    op.drop_table("users")
