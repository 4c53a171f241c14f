import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3005))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

PERSISTENCE_ENABLED = os.getenv("PERSISTENCE_ENABLED", "true").lower() not in ("0", "false", "no")

# Upper bound for a single websocket write during a room broadcast
SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 5))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

ROOM_PREFIX = "order_"
DEFAULT_PLATFORM = "web"
SERVER_PLATFORM = "server"
DEFAULT_MESSAGE_TYPE = "chat-message"
