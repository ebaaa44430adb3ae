import asyncio
import json
from typing import Iterable

import pydantic
from fastapi import WebSocket

from backend import ChatBackend
from constants import HISTORY_LIMIT, MAX_MESSAGE_LENGTH
from errors import ChatError, DuplicateRoom, ParseError, TransportError, ValidationError
from logging_config import get_logger
from registry import Connection, ConnectionRegistry
from schemas.base import WireModel
from schemas.events import (
    INBOUND_EVENT_TYPES,
    CreateRoomEvent,
    ErrorEvent,
    JoinRoomEvent,
    MessageEvent,
    NewMessageEvent,
    NewRoomEvent,
    RoomHistoryEvent,
    RoomsListEvent,
    inbound_event_adapter,
)
from schemas.rooms import Room

logger = get_logger(__name__)


def parse_event(raw: str):
    """Decode one inbound frame into a typed event."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError() from e

    if not isinstance(data, dict):
        raise ParseError()

    event_type = data.get("type")
    if event_type not in INBOUND_EVENT_TYPES:
        raise ParseError(f"Unknown event type: {event_type}")

    try:
        return inbound_event_adapter.validate_python(data)
    except pydantic.ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"][1:]) or event_type
        raise ValidationError(f"Invalid {event_type} event: {field}: {error['msg']}") from e


class BroadcastRouter:
    """Routes inbound events to the store and fans out the results.

    Events are handled one at a time under a single lock, so the
    check-then-create of a room and the order messages reach a room are
    decided by processing order alone.
    """

    def __init__(self, backend: ChatBackend, registry: ConnectionRegistry,
                 history_limit: int = HISTORY_LIMIT, max_message_length: int = MAX_MESSAGE_LENGTH):
        self.backend = backend
        self.registry = registry
        self.history_limit = history_limit
        self.max_message_length = max_message_length
        self._lock = asyncio.Lock()
        self._handlers = {
            "join_room": self._on_join_room,
            "message": self._on_message,
            "create_room": self._on_create_room,
        }

    async def connect(self, connection_id: str, websocket: WebSocket) -> Connection:
        connection = self.registry.open(connection_id, websocket)
        await self.send(connection, RoomsListEvent(rooms=self.backend.get_rooms()))
        return connection

    def disconnect(self, connection_id: str) -> None:
        self.registry.close(connection_id)

    async def dispatch(self, connection_id: str, raw: str) -> None:
        connection = self.registry.get(connection_id)
        if connection is None:
            logger.warning(f"Dropping frame for unknown connection {connection_id}")
            return

        async with self._lock:
            try:
                event = parse_event(raw)
                logger.debug(f"Handling {event.type} from connection {connection_id}")
                await self._handlers[event.type](connection, event)
            except ChatError as e:
                logger.info(f"Rejected frame from connection {connection_id}: {e.message}")
                await self.send(connection, ErrorEvent(message=e.message))
            except Exception as e:
                logger.error(f"Error handling frame from connection {connection_id}: {e}", exc_info=True)
                await self.send(connection, ErrorEvent(message="Failed to process request"))

    async def create_room(self, name: str) -> Room:
        """Create a room and announce it to every connection.

        Raises ``ValidationError`` for an empty name and ``DuplicateRoom``
        when the name is taken.
        """
        async with self._lock:
            return await self._create_room(name)

    async def _on_join_room(self, connection: Connection, event: JoinRoomEvent) -> None:
        self.registry.join(connection.connection_id, event.room_id, event.username)
        self.backend.ensure_user(event.username)
        logger.info(f"Connection {connection.connection_id} ({event.username}) joined room {event.room_id}")

        messages = self.backend.get_room_messages(event.room_id, self.history_limit)
        await self.send(connection, RoomHistoryEvent(room_id=event.room_id, messages=messages))

    async def _on_message(self, connection: Connection, event: MessageEvent) -> None:
        room_id = event.room_id or connection.room_id
        if not room_id:
            raise ValidationError("No room selected - join a room first")
        username = event.username or connection.username
        if not username:
            raise ValidationError("Username is required")
        if not 1 <= len(event.content) <= self.max_message_length:
            raise ValidationError(f"Message must be between 1 and {self.max_message_length} characters")

        message = self.backend.create_message(room_id, username, event.content)
        recipients = self.registry.in_room(room_id)
        logger.debug(f"Broadcasting message {message.id} to {len(recipients)} connections in room {room_id}")
        await self.broadcast(NewMessageEvent(message=message), recipients)

    async def _on_create_room(self, connection: Connection, event: CreateRoomEvent) -> None:
        await self._create_room(event.name)

    async def _create_room(self, name: str) -> Room:
        name = name.strip()
        if not name:
            raise ValidationError("Room name must not be empty")
        if self.backend.get_room_by_name(name):
            raise DuplicateRoom()

        room = self.backend.create_room(name)
        await self.broadcast(NewRoomEvent(room=room), self.registry.all())
        return room

    async def send(self, connection: Connection, event: WireModel) -> bool:
        if not connection.is_open:
            return False
        try:
            await connection.send(event.to_wire_json())
        except TransportError as e:
            logger.debug(f"Skipping send to connection {connection.connection_id}: {e.message}")
            return False
        return True

    async def broadcast(self, event: WireModel, recipients: Iterable[Connection]) -> int:
        targets = [connection for connection in recipients if connection.is_open]
        if not targets:
            return 0
        payload = event.to_wire_json()
        results = await asyncio.gather(*(connection.send(payload) for connection in targets), return_exceptions=True)

        delivered = 0
        for connection, result in zip(targets, results):
            if isinstance(result, TransportError):
                logger.debug(f"Skipping send to connection {connection.connection_id}: {result.message}")
            elif isinstance(result, Exception):
                logger.warning(f"Unexpected send failure to connection {connection.connection_id}: {result!r}",
                               exc_info=result)
            elif isinstance(result, BaseException):
                raise result
            else:
                delivered += 1
        return delivered
