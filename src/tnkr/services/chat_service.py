"""Chat service — persistence side of direct messaging.

Learn: The real-time gateway writes messages through create_message();
the REST history endpoints read them back. Postgres is the durable copy:
a message exists here before any live push is attempted, so a missed
push is recovered by re-fetching history.
"""

import uuid
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.db.models import Message, User
from tnkr.errors import NotFoundError


class ChatService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def create_message(
        self,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        content: str,
    ) -> Message:
        """Persist a message. Content must already be validated and trimmed."""
        receiver = await self.get_user(receiver_id)
        if receiver is None:
            raise NotFoundError("Recipient not found")
        sender = await self.get_user(sender_id)
        if sender is None:
            raise NotFoundError("Sender not found")

        message = Message(sender=sender, receiver=receiver, content=content)
        self.db.add(message)
        await self.db.commit()
        return message

    async def history(
        self, user_id: uuid.UUID, other_user_id: uuid.UUID
    ) -> list[Message]:
        """Messages between two users in both directions, oldest first."""
        result = await self.db.execute(
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
                    and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
                )
            )
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())

    async def conversations(self, user_id: uuid.UUID) -> list[dict]:
        """One entry per counterpart with the latest message, newest first.

        Learn: Walks the user's messages newest-first and keeps the first
        one seen per counterpart — a single query, no per-conversation
        round trips.
        """
        result = await self.db.execute(
            select(Message)
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc())
        )

        latest: dict[uuid.UUID, Message] = {}
        for message in result.scalars():
            other = message.receiver if message.sender_id == user_id else message.sender
            if other.id not in latest:
                latest[other.id] = message

        return [
            {
                "conversation_id": other_id,
                "other_user": (
                    message.receiver if message.sender_id == user_id else message.sender
                ),
                "last_message": message,
                "last_message_at": message.created_at,
            }
            for other_id, message in latest.items()
        ]
