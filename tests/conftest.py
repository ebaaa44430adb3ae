import asyncio
import json

import fakeredis
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from app import create_app
from backend import MemoryBackend, RedisBackend
from broadcast import BroadcastRouter
from registry import ConnectionRegistry


class FakeWebSocket:
    """Stands in for a server-side socket; records every frame sent to it.

    ``gate`` holds every send until the event is set; ``error`` is raised
    from every send instead of recording the frame.
    """

    def __init__(self, fail: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.fail = fail
        self.error = None
        self.gate = None
        self.frames = []

    async def send_text(self, data: str):
        if self.gate is not None:
            await self.gate.wait()
        # Let other tasks run between sends, as a real socket write would
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("Cannot call 'send' once a close message has been sent.")
        if self.error is not None:
            raise self.error
        self.frames.append(json.loads(data))

    def of_type(self, event_type: str) -> list:
        return [frame for frame in self.frames if frame["type"] == event_type]


def make_redis_backend(server=None) -> RedisBackend:
    return RedisBackend(fakeredis.FakeRedis(server=server or fakeredis.FakeServer(), decode_responses=True))


@pytest.fixture(params=["memory", "redis"])
def any_backend(request):
    if request.param == "memory":
        return MemoryBackend()
    return make_redis_backend()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def router(backend, registry):
    return BroadcastRouter(backend, registry)


@pytest.fixture
def connect(router):
    """Open a fake connection on the router and drop its initial rooms_list."""

    async def _connect(connection_id: str, fail: bool = False) -> FakeWebSocket:
        websocket = FakeWebSocket(fail=fail)
        await router.connect(connection_id, websocket)
        websocket.frames.clear()
        return websocket

    return _connect


@pytest.fixture
def general(backend):
    return backend.get_room_by_name("general")


@pytest.fixture
def app(backend):
    return create_app(backend=backend)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
