"""WebSocket frames.

Every frame is a JSON object with a ``type`` discriminator. Inbound events
are parsed with ``inbound_event_adapter``; outbound events are serialized
with ``WireModel.to_wire_json``.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from schemas.base import WireModel
from schemas.messages import Message
from schemas.rooms import Room


# Inbound

class JoinRoomEvent(WireModel):
    type: Literal["join_room"]
    room_id: str = Field(min_length=1)
    username: str = Field(min_length=1)

class MessageEvent(WireModel):
    type: Literal["message"]
    room_id: Optional[str] = None
    username: Optional[str] = None
    content: str

class CreateRoomEvent(WireModel):
    type: Literal["create_room"]
    name: str


InboundEvent = Annotated[
    Union[JoinRoomEvent, MessageEvent, CreateRoomEvent],
    Field(discriminator="type"),
]

inbound_event_adapter = TypeAdapter(InboundEvent)

INBOUND_EVENT_TYPES = ("join_room", "message", "create_room")


# Outbound

class RoomsListEvent(WireModel):
    type: Literal["rooms_list"] = "rooms_list"
    rooms: list[Room]

class RoomHistoryEvent(WireModel):
    type: Literal["room_history"] = "room_history"
    room_id: str
    messages: list[Message]

class NewMessageEvent(WireModel):
    type: Literal["new_message"] = "new_message"
    message: Message

class NewRoomEvent(WireModel):
    type: Literal["new_room"] = "new_room"
    room: Room

class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    message: str
