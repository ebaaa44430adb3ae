import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import redis

from constants import DEFAULT_ROOM_NAME, HISTORY_LIMIT, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT, STORE_BACKEND
from errors import DuplicateRoom, DuplicateUser
from logging_config import get_logger
from redis_keys import (
    REDIS_MESSAGES_KEY,
    REDIS_ROOM_MESSAGES_KEY,
    REDIS_ROOM_META_KEY,
    REDIS_ROOM_NAMES_KEY,
    REDIS_ROOMS_INDEX_KEY,
    REDIS_ROOMS_SEQ_KEY,
    REDIS_USER_KEY,
    REDIS_USERNAMES_KEY,
)
from schemas.messages import Message
from schemas.rooms import Room
from schemas.users import User

logger = get_logger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatBackend(ABC):
    """Store for users, rooms and messages.

    Collections are ordered by creation. Every create assigns a fresh id and,
    for rooms and messages, a server-side timestamp.
    """

    @abstractmethod
    def create_user(self, username: str) -> User: ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_room(self, name: str) -> Room: ...

    @abstractmethod
    def get_rooms(self) -> list[Room]: ...

    @abstractmethod
    def get_room(self, room_id: str) -> Optional[Room]: ...

    @abstractmethod
    def get_room_by_name(self, name: str) -> Optional[Room]: ...

    @abstractmethod
    def create_message(self, room_id: str, username: str, content: str) -> Message: ...

    @abstractmethod
    def get_room_messages(self, room_id: str, limit: int = HISTORY_LIMIT) -> list[Message]: ...

    @abstractmethod
    def get_recent_messages(self, limit: int = HISTORY_LIMIT) -> list[Message]: ...

    def ensure_user(self, username: str) -> User:
        user = self.get_user_by_username(username)
        if user:
            return user
        try:
            return self.create_user(username)
        except DuplicateUser:
            return self.get_user_by_username(username)

    def ensure_default_room(self) -> Room:
        room = self.get_room_by_name(DEFAULT_ROOM_NAME)
        if room:
            return room
        try:
            return self.create_room(DEFAULT_ROOM_NAME)
        except DuplicateRoom:
            # Another process sharing the store created it first
            logger.debug(f"Default room '{DEFAULT_ROOM_NAME}' created concurrently")
            return self.get_room_by_name(DEFAULT_ROOM_NAME)


class MemoryBackend(ChatBackend):
    """Volatile in-process store. Nothing survives a restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._rooms: dict[str, Room] = {}
        self._messages: list[Message] = []
        self._room_messages: dict[str, list[Message]] = {}
        self.ensure_default_room()
        logger.info("Initialized in-memory backend")

    def create_user(self, username: str) -> User:
        with self._lock:
            if any(user.username == username for user in self._users.values()):
                raise DuplicateUser()
            user = User(id=new_id(), username=username)
            self._users[user.id] = user
        logger.debug(f"Created user {user.id} ({username})")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((user for user in self._users.values() if user.username == username), None)

    def create_room(self, name: str) -> Room:
        with self._lock:
            if any(room.name == name for room in self._rooms.values()):
                raise DuplicateRoom()
            room = Room(id=new_id(), name=name, created_at=utcnow())
            self._rooms[room.id] = room
        logger.info(f"Created room {room.id} ({name})")
        return room

    def get_rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def get_room_by_name(self, name: str) -> Optional[Room]:
        return next((room for room in self._rooms.values() if room.name == name), None)

    def create_message(self, room_id: str, username: str, content: str) -> Message:
        with self._lock:
            message = Message(id=new_id(), room_id=room_id, username=username, content=content, timestamp=utcnow())
            self._messages.append(message)
            self._room_messages.setdefault(room_id, []).append(message)
        logger.debug(f"Stored message {message.id} in room {room_id}")
        return message

    def get_room_messages(self, room_id: str, limit: int = HISTORY_LIMIT) -> list[Message]:
        if limit <= 0:
            return []
        return list(self._room_messages.get(room_id, [])[-limit:])

    def get_recent_messages(self, limit: int = HISTORY_LIMIT) -> list[Message]:
        if limit <= 0:
            return []
        return list(self._messages[-limit:])


class RedisBackend(ChatBackend):
    """Same contract as ``MemoryBackend`` on a shared Redis.

    Name uniqueness for rooms and users is enforced with HSETNX on a name
    index, so two processes racing on the same name cannot both win.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client
        logger.info("Initializing RedisBackend")
        self.ensure_default_room()

    def create_user(self, username: str) -> User:
        user = User(id=new_id(), username=username)
        if not self.redis_client.hsetnx(REDIS_USERNAMES_KEY, username, user.id):
            raise DuplicateUser()
        self.redis_client.hset(REDIS_USER_KEY.format(user_id=user.id), mapping={"id": user.id, "username": username})
        logger.debug(f"Created user {user.id} ({username})")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        data = self.redis_client.hgetall(REDIS_USER_KEY.format(user_id=user_id))
        if not data:
            return None
        return User(**data)

    def get_user_by_username(self, username: str) -> Optional[User]:
        user_id = self.redis_client.hget(REDIS_USERNAMES_KEY, username)
        if not user_id:
            return None
        return self.get_user(user_id)

    def create_room(self, name: str) -> Room:
        room = Room(id=new_id(), name=name, created_at=utcnow())
        if not self.redis_client.hsetnx(REDIS_ROOM_NAMES_KEY, name, room.id):
            logger.debug(f"Room name '{name}' already taken")
            raise DuplicateRoom()
        seq = self.redis_client.incr(REDIS_ROOMS_SEQ_KEY)
        pipe = self.redis_client.pipeline()
        pipe.hset(REDIS_ROOM_META_KEY.format(slug=room.id), mapping={
            "id": room.id,
            "name": room.name,
            "created_at": room.created_at.isoformat(),
        })
        pipe.zadd(REDIS_ROOMS_INDEX_KEY, {room.id: seq})
        pipe.execute()
        logger.info(f"Created room {room.id} ({name})")
        return room

    def get_rooms(self) -> list[Room]:
        room_ids = self.redis_client.zrange(REDIS_ROOMS_INDEX_KEY, 0, -1)
        pipe = self.redis_client.pipeline()
        for room_id in room_ids:
            pipe.hgetall(REDIS_ROOM_META_KEY.format(slug=room_id))
        return [Room(**data) for data in pipe.execute() if data]

    def get_room(self, room_id: str) -> Optional[Room]:
        data = self.redis_client.hgetall(REDIS_ROOM_META_KEY.format(slug=room_id))
        if not data:
            logger.debug(f"Room {room_id} not found in Redis")
            return None
        return Room(**data)

    def get_room_by_name(self, name: str) -> Optional[Room]:
        room_id = self.redis_client.hget(REDIS_ROOM_NAMES_KEY, name)
        if not room_id:
            return None
        return self.get_room(room_id)

    def create_message(self, room_id: str, username: str, content: str) -> Message:
        message = Message(id=new_id(), room_id=room_id, username=username, content=content, timestamp=utcnow())
        payload = message.model_dump_json()
        pipe = self.redis_client.pipeline()
        pipe.rpush(REDIS_ROOM_MESSAGES_KEY.format(slug=room_id), payload)
        pipe.rpush(REDIS_MESSAGES_KEY, payload)
        pipe.execute()
        logger.debug(f"Stored message {message.id} in room {room_id}")
        return message

    def get_room_messages(self, room_id: str, limit: int = HISTORY_LIMIT) -> list[Message]:
        return self._tail(REDIS_ROOM_MESSAGES_KEY.format(slug=room_id), limit)

    def get_recent_messages(self, limit: int = HISTORY_LIMIT) -> list[Message]:
        return self._tail(REDIS_MESSAGES_KEY, limit)

    def _tail(self, key: str, limit: int) -> list[Message]:
        # LRANGE with -0 would return the whole list
        if limit <= 0:
            return []
        return [Message.model_validate_json(raw) for raw in self.redis_client.lrange(key, -limit, -1)]


def create_backend(kind: str = STORE_BACKEND) -> ChatBackend:
    if kind == "memory":
        return MemoryBackend()
    if kind == "redis":
        try:
            redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
            # Test connection
            redis_client.ping()
            logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            raise
        return RedisBackend(redis_client)
    raise ValueError(f"Unknown store backend: {kind}")
