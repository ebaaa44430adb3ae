import pytest
from starlette.websockets import WebSocketState

from conftest import FakeWebSocket
from errors import TransportError
from registry import ConnectionState


def test_open_registers_unjoined_connection(registry):
    connection = registry.open("a", FakeWebSocket())

    assert "a" in registry
    assert len(registry) == 1
    assert connection.state == ConnectionState.OPEN
    assert connection.room_id is None
    assert connection.username is None
    assert connection.is_open


def test_join_sets_membership(registry):
    registry.open("a", FakeWebSocket())
    connection = registry.join("a", "room-1", "alice")

    assert connection.state == ConnectionState.JOINED
    assert (connection.room_id, connection.username) == ("room-1", "alice")
    assert registry.in_room("room-1") == [connection]


def test_rejoin_overwrites_previous_room(registry):
    registry.open("a", FakeWebSocket())
    registry.join("a", "room-1", "alice")
    registry.join("a", "room-2", "alice2")

    assert registry.in_room("room-1") == []
    assert [c.username for c in registry.in_room("room-2")] == ["alice2"]


def test_in_room_ignores_connections_that_have_not_joined(registry):
    registry.open("a", FakeWebSocket())
    registry.open("b", FakeWebSocket())
    registry.join("b", "room-1", "bob")

    assert [c.connection_id for c in registry.in_room("room-1")] == ["b"]
    assert len(registry.all()) == 2


def test_close_removes_entry(registry):
    registry.open("a", FakeWebSocket())
    registry.join("a", "room-1", "alice")

    connection = registry.close("a")

    assert connection.state == ConnectionState.CLOSED
    assert not connection.is_open
    assert "a" not in registry
    assert registry.get("a") is None
    assert registry.in_room("room-1") == []
    assert registry.close("a") is None


def test_is_open_follows_socket_state(registry):
    websocket = FakeWebSocket()
    connection = registry.open("a", websocket)
    websocket.client_state = WebSocketState.DISCONNECTED
    assert not connection.is_open


@pytest.mark.asyncio
async def test_send_failure_raises_transport_error(registry):
    connection = registry.open("a", FakeWebSocket(fail=True))
    with pytest.raises(TransportError):
        await connection.send("{}")
