"""WebSocket endpoint — real-time messaging for customers and technicians.

Learn: Each client connects to /ws?token=JWT (a Bearer or access-token
header works too). The handler:
1. Authenticates BEFORE accepting — a bad token never joins a room
2. Registers the connection with the gateway (joins "user:{id}")
3. Runs a writer task that drains the connection's queue to the socket
4. Reads frames in order and dispatches them to the gateway
5. On disconnect, leaves all rooms and stops the writer

Wire format (JSON text frames):
  → {"event": "send message", "data": {"receiverId", "content"}, "ack": 1}
  ← {"event": "ack", "ack": 1, "data": {"status": "ok", "message": {...}}}
  ← {"event": "new message", "data": {...}}
  → {"event": "join conversation", "data": {"conversationId": "..."}}
  → {"event": "ping"}  ← {"event": "pong"}
"""

import asyncio
import json
from typing import Any, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from tnkr.auth.dependencies import CurrentIdentity, extract_token, identity_from_token
from tnkr.auth.jwt import TokenError
from tnkr.realtime.gateway import MessagingGateway, get_gateway
from tnkr.realtime.registry import Connection

logger = structlog.get_logger()
router = APIRouter()

AUTH_FAILED = 4001

SEND_MESSAGE = "send message"
JOIN_CONVERSATION = "join conversation"
LEAVE_CONVERSATION = "leave conversation"


async def _authenticate(websocket: WebSocket) -> Optional[CurrentIdentity]:
    token = websocket.query_params.get("token") or extract_token(
        websocket.headers.get("authorization"),
        websocket.headers.get("access-token"),
    )
    if not token:
        await websocket.close(code=AUTH_FAILED, reason="Authentication required")
        return None
    try:
        return identity_from_token(token)
    except TokenError as e:
        logger.info("messaging.handshake_rejected", reason=str(e))
        await websocket.close(code=AUTH_FAILED, reason="Invalid or expired token")
        return None


async def _writer(websocket: WebSocket, connection: Connection) -> None:
    """Single consumer of the connection's outbound queue."""
    while True:
        frame = await connection.queue.get()
        try:
            await websocket.send_text(json.dumps(frame))
        except (WebSocketDisconnect, RuntimeError) as e:
            # Socket is gone; the reader loop notices and cleans up.
            logger.debug("messaging.write_failed", connection_id=connection.id, error=str(e))
            return


async def dispatch_frame(
    gateway: MessagingGateway,
    identity: CurrentIdentity,
    connection: Connection,
    raw: str,
) -> None:
    """Handle one inbound frame; replies go through the connection queue."""
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        connection.send({"event": "error", "data": {"error": "Malformed frame"}})
        return
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        connection.send({"event": "error", "data": {"error": "Frame must have an event"}})
        return

    event = frame["event"]
    data: Any = frame.get("data")
    ack = frame.get("ack")

    if event == "ping":
        connection.send({"event": "pong"})
        return

    if event == SEND_MESSAGE:
        result = await gateway.send_message(identity, data)
    elif event == JOIN_CONVERSATION:
        result = gateway.join_conversation(connection, data)
    elif event == LEAVE_CONVERSATION:
        result = gateway.leave_conversation(connection, data)
    else:
        result = {
            "status": "error",
            "error": f"Unknown event: {event}",
            "code": "unknown_event",
        }

    if ack is not None:
        connection.send({"event": "ack", "ack": ack, "data": result})
    elif result["status"] == "error":
        connection.send({"event": "error", "data": result})


@router.websocket("/ws")
async def messaging_websocket(websocket: WebSocket):
    """Authenticated, bidirectional messaging socket (one per device)."""
    identity = await _authenticate(websocket)
    if identity is None:
        return

    await websocket.accept()

    gateway = get_gateway()
    connection = gateway.connect(identity)
    log = logger.bind(user_id=identity.user_id, connection_id=connection.id)
    writer = asyncio.create_task(_writer(websocket, connection))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                log.debug("messaging.client_closed", code=message.get("code"))
                break
            raw = message.get("text")
            if raw is None:
                connection.send(
                    {"event": "error", "data": {"error": "Only text frames are supported"}}
                )
                continue
            await dispatch_frame(gateway, identity, connection, raw)
    finally:
        gateway.disconnect(connection)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
