"""Connection registry tests — rooms, fan-out, disconnect."""

import pytest

from tnkr.realtime.registry import (
    Connection,
    ConnectionRegistry,
    conversation_room,
    user_room,
)


def drain(connection: Connection) -> list[dict]:
    frames = []
    while not connection.queue.empty():
        frames.append(connection.queue.get_nowait())
    return frames


@pytest.mark.asyncio
async def test_emit_reaches_every_member():
    registry = ConnectionRegistry()
    phone, laptop = Connection(user_id="u1"), Connection(user_id="u1")
    registry.join(phone, user_room("u1"))
    registry.join(laptop, user_room("u1"))

    delivered = registry.emit(user_room("u1"), "new message", {"id": "m1"})

    assert delivered == 2
    assert drain(phone) == [{"event": "new message", "data": {"id": "m1"}}]
    assert drain(laptop) == [{"event": "new message", "data": {"id": "m1"}}]


@pytest.mark.asyncio
async def test_emit_to_empty_room_is_zero():
    registry = ConnectionRegistry()
    assert registry.emit(user_room("nobody"), "new message", {}) == 0


@pytest.mark.asyncio
async def test_removed_connection_gets_nothing():
    registry = ConnectionRegistry()
    connection = Connection(user_id="u1")
    registry.join(connection, user_room("u1"))
    registry.join(connection, conversation_room("c1"))

    registry.remove(connection)

    assert connection.closed
    assert connection.rooms == set()
    assert registry.emit(user_room("u1"), "new message", {}) == 0
    assert registry.room_count() == 0
    assert drain(connection) == []


@pytest.mark.asyncio
async def test_remove_is_idempotent():
    registry = ConnectionRegistry()
    connection = Connection(user_id="u1")
    registry.join(connection, user_room("u1"))
    registry.remove(connection)
    registry.remove(connection)
    assert registry.members(user_room("u1")) == []


@pytest.mark.asyncio
async def test_closed_connection_cannot_rejoin():
    registry = ConnectionRegistry()
    connection = Connection(user_id="u1")
    registry.remove(connection)
    registry.join(connection, user_room("u1"))
    assert registry.members(user_room("u1")) == []


@pytest.mark.asyncio
async def test_leave_only_affects_that_room():
    registry = ConnectionRegistry()
    connection = Connection(user_id="u1")
    registry.join(connection, user_room("u1"))
    registry.join(connection, conversation_room("c1"))

    registry.leave(connection, conversation_room("c1"))

    assert connection.rooms == {user_room("u1")}
    assert registry.members(user_room("u1")) == [connection]
    assert registry.members(conversation_room("c1")) == []
