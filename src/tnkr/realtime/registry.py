"""Connection registry — room membership for live WebSocket connections.

Learn: Routing is by *room*, never by a hand-maintained socket table.
Every authenticated connection joins "user:{id}" at connect time; a push
to that room reaches all of the user's devices. Conversation rooms
("conversation:{id}") are a secondary grouping on top.

Each Connection owns an asyncio.Queue. emit() only enqueues; a single
writer task per socket drains the queue. So a slow socket never blocks
the handler that is fanning out, and nothing here needs a lock — all
mutations happen on the event loop between awaits.

Membership is process-local and starts empty on every restart.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


def user_room(user_id: Any) -> str:
    return f"user:{user_id}"


def conversation_room(conversation_id: Any) -> str:
    return f"conversation:{conversation_id}"


@dataclass(eq=False)
class Connection:
    """One live socket, bound to exactly one authenticated user."""

    user_id: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    rooms: set[str] = field(default_factory=set)
    closed: bool = False

    def send(self, frame: dict) -> bool:
        """Enqueue a frame for the writer task. False if already closed."""
        if self.closed:
            return False
        self.queue.put_nowait(frame)
        return True


class ConnectionRegistry:
    """room name → set of live connections."""

    def __init__(self) -> None:
        self._rooms: dict[str, set[Connection]] = {}

    def join(self, connection: Connection, room: str) -> None:
        if connection.closed:
            return
        self._rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)

    def leave(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]
        connection.rooms.discard(room)

    def remove(self, connection: Connection) -> None:
        """Drop a connection from every room. Safe to call more than once."""
        for room in list(connection.rooms):
            self.leave(connection, room)
        connection.closed = True

    def members(self, room: str) -> list[Connection]:
        return list(self._rooms.get(room, ()))

    def emit(self, room: str, event: str, data: Any) -> int:
        """Queue an event for every connection in room. Returns deliveries."""
        delivered = 0
        for connection in self.members(room):
            if connection.send({"event": event, "data": data}):
                delivered += 1
        logger.debug("registry.emit", room=room, event=event, deliveries=delivered)
        return delivered

    def room_count(self) -> int:
        return len(self._rooms)
