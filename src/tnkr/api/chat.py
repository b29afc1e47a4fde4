"""Chat history API — the durable side of messaging.

Learn: Live delivery happens over the WebSocket (/ws). These REST routes
read what was persisted, which is how a client catches up on anything
sent while it was offline:
- GET /chat/conversations → one row per counterpart, newest first
- GET /chat/messages/{otherUserId} → full thread, oldest first
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.auth.dependencies import CurrentIdentity
from tnkr.auth.policy import require
from tnkr.db.engine import get_db
from tnkr.schemas.message import ConversationRead, MessageRead
from tnkr.schemas.user import UserSummary
from tnkr.services.chat_service import ChatService

router = APIRouter(prefix="/chat")


@router.get("/conversations", response_model=list[ConversationRead])
async def list_conversations(
    identity: CurrentIdentity = Depends(require("chat:use")),
    db: AsyncSession = Depends(get_db),
):
    conversations = await ChatService(db).conversations(identity.uuid)
    return [
        ConversationRead(
            conversation_id=c["conversation_id"],
            other_user=UserSummary.model_validate(c["other_user"]),
            last_message=MessageRead.model_validate(c["last_message"]),
            last_message_at=c["last_message_at"],
        )
        for c in conversations
    ]


@router.get("/messages/{other_user_id}", response_model=list[MessageRead])
async def message_history(
    other_user_id: uuid.UUID,
    identity: CurrentIdentity = Depends(require("chat:use")),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).history(identity.uuid, other_user_id)
