from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from errors import TransportError
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    OPEN = "open"
    JOINED = "joined"
    CLOSED = "closed"


@dataclass
class Connection:
    """Membership record for one live socket.

    ``room_id`` and ``username`` are only meaningful once the connection is
    JOINED.
    """

    connection_id: str
    websocket: WebSocket
    state: ConnectionState = ConnectionState.OPEN
    room_id: Optional[str] = None
    username: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_open(self) -> bool:
        return self.state != ConnectionState.CLOSED and self.websocket.client_state == WebSocketState.CONNECTED

    async def send(self, payload: str) -> None:
        try:
            await self.websocket.send_text(payload)
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            raise TransportError(str(e)) from e


class ConnectionRegistry:
    """Live table of connection id -> ``Connection``.

    Entries are inserted on open and removed on close; ``join`` is the only
    other mutation.
    """

    def __init__(self):
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def open(self, connection_id: str, websocket: WebSocket) -> Connection:
        connection = Connection(connection_id=connection_id, websocket=websocket)
        self._connections[connection_id] = connection
        logger.debug(f"Registered connection {connection_id} (live connections: {len(self._connections)})")
        return connection

    def join(self, connection_id: str, room_id: str, username: str) -> Connection:
        connection = self._connections[connection_id]
        previous_room = connection.room_id
        connection.room_id = room_id
        connection.username = username
        connection.state = ConnectionState.JOINED
        if previous_room and previous_room != room_id:
            logger.debug(f"Connection {connection_id} moved from room {previous_room} to {room_id}")
        return connection

    def close(self, connection_id: str) -> Optional[Connection]:
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None
        connection.state = ConnectionState.CLOSED
        logger.debug(f"Removed connection {connection_id} (live connections: {len(self._connections)})")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def all(self) -> list[Connection]:
        return list(self._connections.values())

    def in_room(self, room_id: str) -> list[Connection]:
        return [
            connection for connection in self._connections.values()
            if connection.state == ConnectionState.JOINED and connection.room_id == room_id
        ]
