"""Reconnecting chat client.

``ChatClient`` keeps one socket open to the relay and reconnects forever:

    CONNECTING -> CONNECTED -> DISCONNECTED -> (3s) -> CONNECTING
    CONNECTING -> ERROR -> (5s) -> CONNECTING

Reconnecting is safe because joining again only re-requests room history.
Run ``roomrelay-client --username NAME`` for a line-based terminal client.
"""
import argparse
import asyncio
import contextlib
import json
import sys
from enum import Enum
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from constants import CHAT_WS_URL, ERROR_RECONNECT_DELAY_SECONDS, LOG_FILE, MAX_MESSAGE_LENGTH, RECONNECT_DELAY_SECONDS
from logging_config import get_logger, setup_logging

logger = get_logger(__name__)


class ClientState(str, Enum):
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    ERROR = "ERROR"


class ChatClient:
    def __init__(
        self,
        username: str,
        url: str = CHAT_WS_URL,
        *,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        error_reconnect_delay: float = ERROR_RECONNECT_DELAY_SECONDS,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        on_event: Optional[Callable[[dict], Any]] = None,
        on_state_change: Optional[Callable[[ClientState], Any]] = None,
        on_notice: Optional[Callable[[str], Any]] = None,
        connect=websockets.connect,
        sleep=asyncio.sleep,
    ):
        self.username = username
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.error_reconnect_delay = error_reconnect_delay
        self.max_message_length = max_message_length
        self.on_event = on_event
        self.on_state_change = on_state_change
        self.on_notice = on_notice
        self._connect = connect
        self._sleep = sleep

        self.state: Optional[ClientState] = None
        self.rooms: dict[str, dict] = {}
        self.current_room_id: Optional[str] = None
        self.messages: list[dict] = []
        self._socket = None
        self._running = False

    @property
    def is_connected(self) -> bool:
        return self.state == ClientState.CONNECTED and self._socket is not None

    async def run(self) -> None:
        """Connect and keep reconnecting until ``stop`` is called."""
        self._running = True
        while self._running:
            self._set_state(ClientState.CONNECTING)
            logger.info(f"Connecting to {self.url}")
            connected = False
            try:
                async with self._connect(self.url) as socket:
                    self._socket = socket
                    connected = True
                    self._set_state(ClientState.CONNECTED)
                    async for frame in socket:
                        await self._handle_frame(frame)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                if connected:
                    logger.info(f"Connection to {self.url} lost: {e}")
                else:
                    logger.warning(f"Failed to connect to {self.url}: {e}")
            finally:
                self._socket = None

            if connected:
                self._set_state(ClientState.DISCONNECTED)
                delay = self.reconnect_delay
            else:
                self._set_state(ClientState.ERROR)
                delay = self.error_reconnect_delay

            if not self._running:
                break
            logger.info(f"Attempting to reconnect in {delay}s")
            await self._sleep(delay)

    async def stop(self) -> None:
        self._running = False
        if self._socket is not None:
            await self._socket.close()

    async def join_room(self, room_id: str) -> bool:
        if not self.is_connected:
            self._notice("Not connected - cannot join room")
            return False
        self.current_room_id = room_id
        self.messages = []
        return await self._send({"type": "join_room", "roomId": room_id, "username": self.username})

    async def create_room(self, name: str) -> bool:
        name = name.strip()
        if not name:
            return False
        if not self.is_connected:
            self._notice("Not connected - cannot create room")
            return False
        return await self._send({"type": "create_room", "name": name})

    async def send_message(self, content: str) -> bool:
        content = content.strip()
        if not content:
            return False
        if not self.is_connected:
            self._notice("Not connected - message not sent")
            return False
        if not self.current_room_id:
            self._notice("No room selected - select a room first")
            return False
        if len(content) > self.max_message_length:
            self._notice(f"Message too long - max {self.max_message_length} characters")
            return False
        return await self._send({
            "type": "message",
            "roomId": self.current_room_id,
            "username": self.username,
            "content": content,
        })

    def is_own_message(self, message: dict) -> bool:
        return message.get("username") == self.username

    def room_by_name(self, name: str) -> Optional[dict]:
        return next((room for room in self.rooms.values() if room.get("name") == name), None)

    async def _handle_frame(self, frame) -> None:
        try:
            event = json.loads(frame)
        except json.JSONDecodeError as e:
            logger.warning(f"Error parsing frame from server: {e}")
            return
        if not isinstance(event, dict):
            logger.warning(f"Ignoring non-object frame from server: {frame!r}")
            return

        try:
            await self._apply_event(event)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring malformed {event.get('type')} frame from server: {e!r}")
            return

        if self.on_event:
            try:
                self.on_event(event)
            except Exception as e:
                logger.error(f"Event callback failed for {event.get('type')} frame: {e}", exc_info=True)

    async def _apply_event(self, event: dict) -> None:
        event_type = event.get("type")
        if event_type == "rooms_list":
            self.rooms = {room["id"]: room for room in event.get("rooms", [])}
            await self._rejoin()
        elif event_type == "room_history":
            if event.get("roomId") == self.current_room_id:
                self.messages = list(event.get("messages", []))
        elif event_type == "new_message":
            message = event["message"]
            if message.get("roomId") == self.current_room_id:
                self.messages.append(message)
        elif event_type == "new_room":
            room = event["room"]
            self.rooms[room["id"]] = room
        elif event_type == "error":
            self._notice(f"ERROR: {event.get('message')}")
        else:
            logger.warning(f"Unknown event type: {event_type}")

    async def _rejoin(self) -> None:
        # A fresh connection has no membership on the server side
        if self.current_room_id in self.rooms:
            await self.join_room(self.current_room_id)
        elif self.rooms:
            await self.join_room(next(iter(self.rooms)))

    async def _send(self, payload: dict) -> bool:
        try:
            await self._socket.send(json.dumps(payload))
        except ConnectionClosed as e:
            logger.info(f"Send of {payload.get('type')} failed, connection closed: {e}")
            self._notice("Connection lost - not sent")
            return False
        return True

    def _set_state(self, state: ClientState) -> None:
        if state == self.state:
            return
        logger.debug(f"Client state {self.state} -> {state}")
        self.state = state
        if self.on_state_change:
            self.on_state_change(state)

    def _notice(self, text: str) -> None:
        logger.info(text)
        if self.on_notice:
            self.on_notice(text)


def _print_event(client: ChatClient, event: dict) -> None:
    event_type = event.get("type")
    if event_type == "room_history":
        room = client.rooms.get(event["roomId"], {})
        print(f"-- joined {room.get('name', event['roomId'])} ({len(event['messages'])} messages) --")
        for message in event["messages"]:
            print(f"[{message['username']}] {message['content']}")
    elif event_type == "new_message":
        message = event["message"]
        if message["roomId"] == client.current_room_id:
            marker = "*" if client.is_own_message(message) else " "
            print(f"{marker}[{message['username']}] {message['content']}")
    elif event_type == "new_room":
        print(f"-- new room: {event['room']['name']} --")


async def _run_cli(client: ChatClient) -> None:
    runner = asyncio.create_task(client.run())
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            if line == "/quit":
                break
            if line == "/rooms":
                for room in client.rooms.values():
                    current = "*" if room["id"] == client.current_room_id else " "
                    print(f"{current} {room['name']}")
            elif line.startswith("/join "):
                name = line[len("/join "):].strip()
                room = client.room_by_name(name)
                if room is None:
                    print(f"-- no room named {name} --")
                else:
                    await client.join_room(room["id"])
            elif line.startswith("/create "):
                await client.create_room(line[len("/create "):])
            else:
                await client.send_message(line)
    finally:
        await client.stop()
        runner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await runner


def main(argv=None):
    parser = argparse.ArgumentParser(description="Terminal client for the room relay")
    parser.add_argument("--username", required=True, help="Display name used when joining rooms")
    parser.add_argument("--url", default=CHAT_WS_URL, help="WebSocket endpoint of the relay")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    setup_logging(log_level=args.log_level, log_file=LOG_FILE)

    client = ChatClient(args.username, args.url, on_notice=lambda text: print(f"-- {text} --"))
    client.on_event = lambda event: _print_event(client, event)
    client.on_state_change = lambda state: print(f"-- {state.value} --")

    try:
        asyncio.run(_run_cli(client))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
