from datetime import datetime

from schemas.base import WireModel


class Message(WireModel):
    id: str
    room_id: str
    username: str
    content: str
    timestamp: datetime
