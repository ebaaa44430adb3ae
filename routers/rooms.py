from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend import ChatBackend
from broadcast import BroadcastRouter
from constants import HISTORY_LIMIT, MAX_HISTORY_LIMIT
from errors import DuplicateRoom, ValidationError
from logging_config import get_logger
from registry import ConnectionRegistry
from routers.deps import get_backend, get_broadcaster, get_registry
from schemas.messages import Message
from schemas.rooms import CreateRoomRequest, OnlineUser, Room, RoomDetailsResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/rooms", tags=["rooms"])


@rooms_router.get("", response_model=list[Room])
async def list_rooms(backend: ChatBackend = Depends(get_backend)):
    return backend.get_rooms()


@rooms_router.post("", response_model=Room, status_code=status.HTTP_201_CREATED)
async def create_room(room: CreateRoomRequest, broadcaster: BroadcastRouter = Depends(get_broadcaster)):
    """Create a room. Connected sockets are told about it with a new_room event."""
    logger.info(f"Room creation request, name: {room.name}")
    try:
        return await broadcaster.create_room(room.name)
    except DuplicateRoom as e:
        logger.info(f"Room creation rejected: '{room.name}' already exists")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(
    room_id: str,
    backend: ChatBackend = Depends(get_backend),
    registry: ConnectionRegistry = Depends(get_registry),
):
    """
    Get room details including who is currently joined.

    Returns:
    - id, name, createdAt: the room itself
    - onlineUsersCount: connections currently joined to the room
    - onlineUsers: connection id, display name and connect time for each
    """
    room = backend.get_room(room_id)
    if not room:
        logger.warning(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    online_users = [
        OnlineUser(
            connection_id=connection.connection_id,
            display_name=connection.username,
            connected_at=connection.connected_at,
        )
        for connection in registry.in_room(room_id)
    ]

    return RoomDetailsResponse(
        id=room.id,
        name=room.name,
        created_at=room.created_at,
        online_users_count=len(online_users),
        online_users=online_users,
    )


@rooms_router.get("/{room_id}/messages", response_model=list[Message])
async def get_room_messages(
    room_id: str,
    limit: int = Query(HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    backend: ChatBackend = Depends(get_backend),
):
    return backend.get_room_messages(room_id, limit)
