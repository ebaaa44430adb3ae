from fastapi import Request

from backend import ChatBackend
from broadcast import BroadcastRouter
from registry import ConnectionRegistry


def get_backend(request: Request) -> ChatBackend:
    return request.app.state.backend


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_broadcaster(request: Request) -> BroadcastRouter:
    return request.app.state.broadcaster
