def test_list_rooms(client, general):
    response = client.get("/api/rooms")
    assert response.status_code == 200
    assert response.json() == [general.to_wire()]


def test_create_room(client, backend):
    response = client.post("/api/rooms", json={"name": "ops"})
    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "ops"
    assert backend.get_room(body["id"]) is not None

    names = [room["name"] for room in client.get("/api/rooms").json()]
    assert names == ["general", "ops"]


def test_create_room_conflict(client, backend):
    assert client.post("/api/rooms", json={"name": "ops"}).status_code == 201
    response = client.post("/api/rooms", json={"name": "ops"})
    assert response.status_code == 409
    assert response.json()["detail"] == "Room already exists"
    assert len(backend.get_rooms()) == 2


def test_create_room_requires_a_name(client):
    assert client.post("/api/rooms", json={"name": "  "}).status_code == 422
    assert client.post("/api/rooms", json={}).status_code == 422


def test_created_room_is_announced_on_sockets(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        room = client.post("/api/rooms", json={"name": "ops"}).json()
        assert websocket.receive_json() == {"type": "new_room", "room": room}


def test_room_messages(client, backend, general):
    for i in range(3):
        backend.create_message(general.id, "alice", f"m{i}")

    response = client.get(f"/api/rooms/{general.id}/messages", params={"limit": 2})
    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["m1", "m2"]
    assert set(response.json()[0]) == {"id", "roomId", "username", "content", "timestamp"}

    assert len(client.get(f"/api/rooms/{general.id}/messages").json()) == 3
    assert client.get(f"/api/rooms/{general.id}/messages", params={"limit": 0}).status_code == 422


def test_recent_messages(client, backend, general):
    other = backend.create_room("other")
    backend.create_message(general.id, "alice", "one")
    backend.create_message(other.id, "bob", "two")

    response = client.get("/api/messages")
    assert [m["content"] for m in response.json()] == ["one", "two"]
    assert [m["content"] for m in client.get("/api/messages", params={"limit": 1}).json()] == ["two"]


def test_room_details(client, general):
    with client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        websocket.send_json({"type": "join_room", "roomId": general.id, "username": "alice"})
        websocket.receive_json()

        body = client.get(f"/api/rooms/{general.id}").json()

    assert body["name"] == "general"
    assert body["onlineUsersCount"] == 1
    assert body["onlineUsers"][0]["displayName"] == "alice"


def test_room_details_not_found(client):
    assert client.get("/api/rooms/missing").status_code == 404
