import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# "memory" or "redis"
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory")

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

CHAT_WS_URL = os.getenv("CHAT_WS_URL", f"ws://localhost:{PORT}/ws")

DEFAULT_ROOM_NAME = "general"
HISTORY_LIMIT = 50
MAX_MESSAGE_LENGTH = 500
MAX_HISTORY_LIMIT = 500

RECONNECT_DELAY_SECONDS = 3
ERROR_RECONNECT_DELAY_SECONDS = 5
