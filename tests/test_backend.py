import fakeredis
import pytest

from conftest import make_redis_backend
from errors import DuplicateRoom, DuplicateUser


def test_starts_with_general_room(any_backend):
    rooms = any_backend.get_rooms()
    assert [room.name for room in rooms] == ["general"]
    assert rooms[0].id
    assert rooms[0].created_at is not None


def test_create_room_twice_keeps_one_room(any_backend):
    first = any_backend.create_room("ops")
    with pytest.raises(DuplicateRoom):
        any_backend.create_room("ops")

    names = [room.name for room in any_backend.get_rooms()]
    assert names.count("ops") == 1
    assert any_backend.get_room_by_name("ops") == first


def test_rooms_are_ordered_by_creation(any_backend):
    for name in ["zeta", "alpha", "mid"]:
        any_backend.create_room(name)
    assert [room.name for room in any_backend.get_rooms()] == ["general", "zeta", "alpha", "mid"]


def test_room_lookup_is_exact_and_case_sensitive(any_backend):
    room = any_backend.create_room("Ops")
    assert any_backend.get_room_by_name("Ops") == room
    assert any_backend.get_room_by_name("ops") is None
    assert any_backend.get_room(room.id) == room
    assert any_backend.get_room("missing") is None


def test_create_message_assigns_id_and_timestamp(any_backend):
    general = any_backend.get_room_by_name("general")
    first = any_backend.create_message(general.id, "alice", "hi")
    second = any_backend.create_message(general.id, "alice", "hi")

    assert first.id != second.id
    assert first.room_id == general.id
    assert first.timestamp <= second.timestamp


def test_messages_may_reference_unknown_rooms(any_backend):
    message = any_backend.create_message("no-such-room", "bob", "hello?")
    assert any_backend.get_room_messages("no-such-room") == [message]


def test_room_messages_returns_tail_in_send_order(any_backend):
    general = any_backend.get_room_by_name("general")
    other = any_backend.create_room("other")
    for i in range(5):
        any_backend.create_message(general.id, "alice", f"g{i}")
        any_backend.create_message(other.id, "bob", f"o{i}")

    messages = any_backend.get_room_messages(general.id, 3)
    assert [m.content for m in messages] == ["g2", "g3", "g4"]
    assert all(m.room_id == general.id for m in messages)
    timestamps = [m.timestamp for m in messages]
    assert timestamps == sorted(timestamps)


def test_room_messages_never_exceed_limit(any_backend):
    general = any_backend.get_room_by_name("general")
    for i in range(4):
        any_backend.create_message(general.id, "alice", str(i))

    assert len(any_backend.get_room_messages(general.id, 10)) == 4
    assert len(any_backend.get_room_messages(general.id, 1)) == 1
    assert any_backend.get_room_messages(general.id, 0) == []


def test_recent_messages_span_rooms(any_backend):
    general = any_backend.get_room_by_name("general")
    other = any_backend.create_room("other")
    any_backend.create_message(general.id, "alice", "one")
    any_backend.create_message(other.id, "bob", "two")
    any_backend.create_message(general.id, "alice", "three")

    assert [m.content for m in any_backend.get_recent_messages(2)] == ["two", "three"]
    assert [m.content for m in any_backend.get_recent_messages()] == ["one", "two", "three"]
    assert any_backend.get_recent_messages(0) == []


def test_users(any_backend):
    user = any_backend.create_user("alice")
    assert any_backend.get_user(user.id) == user
    assert any_backend.get_user_by_username("alice") == user
    assert any_backend.get_user_by_username("Alice") is None
    assert any_backend.get_user("missing") is None

    with pytest.raises(DuplicateUser):
        any_backend.create_user("alice")
    assert any_backend.ensure_user("alice") == user
    assert any_backend.ensure_user("bob").username == "bob"


def test_redis_backends_sharing_a_server_share_the_default_room():
    server = fakeredis.FakeServer()
    first = make_redis_backend(server)
    second = make_redis_backend(server)

    assert [room.name for room in second.get_rooms()] == ["general"]
    assert first.get_rooms() == second.get_rooms()

    first.create_room("ops")
    with pytest.raises(DuplicateRoom):
        second.create_room("ops")
