from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from routers.messages import messages_router
from backend import redis_backend
from broadcast import broadcaster
from persistence import persistence_client
from schemas.messages import JoinEvent, SendEvent
from sessions import ConnectionSession, ERROR_EVENT
from constants import CORS_ORIGINS, LOG_LEVEL, LOG_FILE
import uuid
import json
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

# Inbound socket event names and their order-chat aliases
JOIN_EVENTS = {"join", "join_order_room"}
SEND_EVENTS = {"send", "send_order_message"}
ACK_EVENT = "ack"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let fire-and-forget saves finish before the store goes away
    await persistence_client.drain()
    await redis_backend.close()
    logger.info("Order chat relay shut down")


app = FastAPI(lifespan=lifespan)

# Configure CORS (all origins unless CORS_ORIGINS is set)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(messages_router)

logger.info("FastAPI application initialized")


async def handle_frame(session: ConnectionSession, websocket: WebSocket, frame: dict):
    """Dispatch one decoded client frame: {"event": ..., "data": {...}, "ack": optional id}."""
    event = frame.get("event")
    data = frame.get("data") or {}
    if not isinstance(data, dict):
        await session.emit(ERROR_EVENT, {"message": "Event data must be an object"})
        return

    try:
        if event in JOIN_EVENTS:
            await session.join(JoinEvent.model_validate(data))
        elif event in SEND_EVENTS:
            reply = None
            # Acknowledgment goes back to the calling connection only, when it asked for one
            if "ack" in frame:
                async def reply(ack: dict):
                    await websocket.send_text(json.dumps({"event": ACK_EVENT, "ack": frame["ack"], "data": ack}))
            await session.send(SendEvent.model_validate(data), reply=reply)
        else:
            logger.debug(f"Unknown event {event!r} from connection {session.connection_id}")
            await session.emit(ERROR_EVENT, {"message": f"Unknown event: {event}"})
    except ValidationError as e:
        logger.info(f"Invalid {event} payload from connection {session.connection_id}: {e.error_count()} errors")
        await session.emit(ERROR_EVENT, {"message": f"Invalid {event} payload"})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Order chat socket.

    Client frames: join / join_order_room, send / send_order_message.
    Server frames: joined, error, new_message, ack.
    """
    await websocket.accept()
    connection_id = str(uuid.uuid4())
    logger.info(f"Client connected: {connection_id}")

    async def emit(event: str, data: dict):
        await websocket.send_text(json.dumps({"event": event, "data": data}))

    session = ConnectionSession(connection_id, emit)
    broadcaster.attach(connection_id, websocket)

    try:
        message_count = 0
        while True:
            data = await websocket.receive_text()
            message_count += 1
            logger.debug(f"Received frame #{message_count} from connection {connection_id}")

            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                await emit(ERROR_EVENT, {"message": "Frames must be JSON objects"})
                continue
            if not isinstance(frame, dict):
                await emit(ERROR_EVENT, {"message": "Frames must be JSON objects"})
                continue

            await handle_frame(session, websocket, frame)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        # Cleanup on disconnect
        session.disconnect()
        broadcaster.detach(connection_id)
        logger.info(f"Client disconnected: {connection_id}")
