import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from logging_config import get_logger

logger = get_logger(__name__)

ws_router = APIRouter(tags=["chat"])


@ws_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Chat socket.

    Lifecycle: accepted -> OPEN (registered, room list sent) -> JOINED after
    the first join_room -> CLOSED once the socket drops for any reason.
    """
    broadcaster = websocket.app.state.broadcaster
    connection_id = uuid.uuid4().hex

    await websocket.accept()
    logger.info(f"WebSocket connection accepted: {connection_id}")

    try:
        await broadcaster.connect(connection_id, websocket)

        message_count = 0
        while True:
            data = await websocket.receive_text()
            message_count += 1
            logger.debug(f"Received frame #{message_count} from connection {connection_id}")
            await broadcaster.dispatch(connection_id, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except (RuntimeError, OSError) as e:
        # Any transport failure is treated as a close
        logger.warning(f"WebSocket transport error for connection {connection_id}: {e}")
    finally:
        broadcaster.disconnect(connection_id)
        logger.info(f"Connection {connection_id} closed")
