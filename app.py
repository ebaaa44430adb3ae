from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import ChatBackend, create_backend
from broadcast import BroadcastRouter
from constants import LOG_FILE, LOG_LEVEL
from logging_config import get_logger, setup_logging
from registry import ConnectionRegistry
from routers.messages import messages_router
from routers.rooms import rooms_router
from routers.ws import ws_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(backend: Optional[ChatBackend] = None) -> FastAPI:
    """Build the application around one store, one registry and one router.

    Pass ``backend`` to share or substitute the store; otherwise one is built
    from ``STORE_BACKEND``.
    """
    app = FastAPI(title="roomrelay")

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.backend = backend if backend is not None else create_backend()
    app.state.registry = ConnectionRegistry()
    app.state.broadcaster = BroadcastRouter(app.state.backend, app.state.registry)

    app.include_router(rooms_router)
    app.include_router(messages_router)
    app.include_router(ws_router)

    logger.info(f"FastAPI application initialized with {type(app.state.backend).__name__}")
    return app


app = create_app()
