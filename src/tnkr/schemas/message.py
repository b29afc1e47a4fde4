"""Pydantic schemas for direct messages.

Learn: The same MessageRead shape is used for the REST history endpoint,
the real-time "new message" push and the sender's ack, so clients
render all three with one code path.
"""

import uuid
from datetime import datetime
from typing import Optional

from tnkr.db.models import Message
from tnkr.schemas.common import CamelModel
from tnkr.schemas.user import UserSummary


class MessageRead(CamelModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    receiver_id: uuid.UUID
    content: str
    created_at: datetime
    sender: UserSummary
    receiver: UserSummary


class ConversationRead(CamelModel):
    conversation_id: uuid.UUID
    other_user: Optional[UserSummary] = None
    last_message: Optional[MessageRead] = None
    last_message_at: Optional[datetime] = None


def serialize_message(message: Message) -> dict:
    """ORM message → JSON-ready camelCase dict (wire format)."""
    return MessageRead.model_validate(message).model_dump(mode="json", by_alias=True)
