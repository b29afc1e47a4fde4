"""Messaging gateway — the send pipeline behind the WebSocket.

Learn: send_message() is a fixed pipeline, and each step either passes
or returns an error result without touching later steps:

  rate limit → validate input → recipient exists → persist → fan out → ack

Results are plain dicts that go back to the caller's ack only, never to
anyone else:
  {"status": "ok", "message": {...}}
  {"status": "error", "error": "...", "code": "rate_limited" | ...}

The message is committed to Postgres before the fan-out, so losing a
push (receiver offline, socket died mid-send) never loses the message.
The sender gets exactly one ack however many devices the receiver has.

Persistence is behind the small MessageStore protocol so tests can run
the pipeline against an in-memory store.
"""

import uuid
from typing import Any, Optional, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError

from tnkr.auth.dependencies import CurrentIdentity
from tnkr.db.engine import async_session_factory
from tnkr.errors import NotFoundError, RateLimitedError, ServiceError, ValidationFailure
from tnkr.realtime.rate_limit import MessageRateLimiter
from tnkr.realtime.registry import (
    Connection,
    ConnectionRegistry,
    conversation_room,
    user_room,
)
from tnkr.schemas.message import serialize_message
from tnkr.services.chat_service import ChatService

logger = structlog.get_logger()

NEW_MESSAGE = "new message"


class MessageStore(Protocol):
    async def recipient_exists(self, user_id: uuid.UUID) -> bool: ...

    async def create_message(
        self, sender_id: uuid.UUID, receiver_id: uuid.UUID, content: str
    ) -> dict: ...


class DatabaseMessageStore:
    """MessageStore backed by ChatService; one short session per call."""

    def __init__(self, session_factory=async_session_factory):
        self.session_factory = session_factory

    async def recipient_exists(self, user_id: uuid.UUID) -> bool:
        async with self.session_factory() as db:
            return await ChatService(db).get_user(user_id) is not None

    async def create_message(
        self, sender_id: uuid.UUID, receiver_id: uuid.UUID, content: str
    ) -> dict:
        async with self.session_factory() as db:
            message = await ChatService(db).create_message(sender_id, receiver_id, content)
            return serialize_message(message)


def ok(**data: Any) -> dict:
    return {"status": "ok", **data}


def error(exc: ServiceError) -> dict:
    return {"status": "error", "error": exc.message, "code": exc.code}


def validate_send_payload(data: Any) -> tuple[uuid.UUID, str]:
    """Return (receiver_id, trimmed content) or raise ValidationFailure."""
    if not isinstance(data, dict):
        raise ValidationFailure("Message payload must be an object")

    content = data.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValidationFailure("Message content cannot be empty")

    receiver_id = data.get("receiverId")
    if receiver_id is None or receiver_id == "":
        raise ValidationFailure("receiverId is required")
    try:
        receiver_uuid = uuid.UUID(str(receiver_id))
    except ValueError:
        raise ValidationFailure("receiverId is malformed")

    return receiver_uuid, content.strip()


def _conversation_id(data: Any) -> str:
    conversation_id = data.get("conversationId") if isinstance(data, dict) else None
    if not isinstance(conversation_id, str) or not conversation_id.strip():
        raise ValidationFailure("conversationId is required")
    return conversation_id.strip()


class MessagingGateway:
    """Connection lifecycle + the send pipeline. One instance per process."""

    def __init__(
        self,
        registry: Optional[ConnectionRegistry] = None,
        rate_limiter: Optional[MessageRateLimiter] = None,
        store: Optional[MessageStore] = None,
    ):
        self.registry = registry or ConnectionRegistry()
        self.rate_limiter = rate_limiter or MessageRateLimiter()
        self.store = store or DatabaseMessageStore()

    # ─── Connection lifecycle ────────────────────────────

    def connect(self, identity: CurrentIdentity) -> Connection:
        """Admit an already-authenticated connection into its user room."""
        connection = Connection(user_id=identity.user_id)
        self.registry.join(connection, user_room(identity.user_id))
        logger.info(
            "messaging.connected",
            user_id=identity.user_id,
            connection_id=connection.id,
        )
        return connection

    def disconnect(self, connection: Connection) -> None:
        """Leave every room. Idempotent; no persisted side effects."""
        if connection.closed:
            return
        self.registry.remove(connection)
        logger.info(
            "messaging.disconnected",
            user_id=connection.user_id,
            connection_id=connection.id,
        )

    # ─── Conversation rooms ──────────────────────────────

    def join_conversation(self, connection: Connection, data: Any) -> dict:
        try:
            conversation_id = _conversation_id(data)
        except ValidationFailure as e:
            return error(e)
        self.registry.join(connection, conversation_room(conversation_id))
        return ok(conversationId=conversation_id)

    def leave_conversation(self, connection: Connection, data: Any) -> dict:
        try:
            conversation_id = _conversation_id(data)
        except ValidationFailure as e:
            return error(e)
        self.registry.leave(connection, conversation_room(conversation_id))
        return ok(conversationId=conversation_id)

    # ─── Send ────────────────────────────────────────────

    async def send_message(self, identity: CurrentIdentity, data: Any) -> dict:
        """Run the send pipeline for one "send message" event."""
        if not await self.rate_limiter.check_and_record(identity.user_id):
            return error(
                RateLimitedError("Rate limit exceeded. Please wait before sending more messages.")
            )

        try:
            receiver_id, content = validate_send_payload(data)
        except ValidationFailure as e:
            return error(e)

        try:
            if not await self.store.recipient_exists(receiver_id):
                return error(NotFoundError("Recipient not found"))
            message = await self.store.create_message(identity.uuid, receiver_id, content)
        except NotFoundError as e:
            return error(e)
        except SQLAlchemyError:
            logger.exception(
                "messaging.persist_failed",
                sender_id=identity.user_id,
                receiver_id=str(receiver_id),
            )
            return {"status": "error", "error": "Failed to send message", "code": "internal_error"}

        deliveries = self.registry.emit(user_room(receiver_id), NEW_MESSAGE, message)
        logger.info(
            "messaging.sent",
            message_id=message["id"],
            sender_id=identity.user_id,
            receiver_id=str(receiver_id),
            deliveries=deliveries,
        )
        return ok(message=message)


# Process-wide gateway (created lazily so tests can swap it first)
_gateway: Optional[MessagingGateway] = None


def get_gateway() -> MessagingGateway:
    global _gateway
    if _gateway is None:
        _gateway = MessagingGateway()
    return _gateway
