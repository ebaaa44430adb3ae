from fastapi import APIRouter, Depends, Query

from backend import ChatBackend
from constants import HISTORY_LIMIT, MAX_HISTORY_LIMIT
from routers.deps import get_backend
from schemas.messages import Message

messages_router = APIRouter(prefix="/api/messages", tags=["messages"])


@messages_router.get("", response_model=list[Message])
async def get_recent_messages(
    limit: int = Query(HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    backend: ChatBackend = Depends(get_backend),
):
    """Most recent messages across every room, oldest first."""
    return backend.get_recent_messages(limit)
