from datetime import datetime
from typing import Optional

from schemas.base import WireModel


class Room(WireModel):
    id: str
    name: str
    created_at: datetime

class CreateRoomRequest(WireModel):
    name: str

class OnlineUser(WireModel):
    connection_id: str
    display_name: str
    connected_at: datetime

class RoomDetailsResponse(WireModel):
    id: str
    name: str
    created_at: datetime
    online_users_count: int
    online_users: Optional[list[OnlineUser]] = None
