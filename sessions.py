import json
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from broadcast import Broadcaster, broadcaster
from constants import ROOM_PREFIX, DEFAULT_PLATFORM, SERVER_PLATFORM, DEFAULT_MESSAGE_TYPE
from persistence import PersistenceClient, persistence_client
from registry import RoomRegistry, registry
from schemas.sessions import Session
from schemas.messages import JoinEvent, Message, SendEvent
from logging_config import get_logger

logger = get_logger(__name__)

# Outbound event names
JOINED_EVENT = "joined"
ERROR_EVENT = "error"
NEW_MESSAGE_EVENT = "new_message"

JOIN_FIELDS_REQUIRED = "Order ID and User ID are required"
NOT_JOINED = "Join a room before sending messages"
MESSAGE_REQUIRED = "Message content is required"

Emit = Callable[[str, dict], Awaitable[None]]
Reply = Callable[[dict], Awaitable[None]]


class SessionState(str, Enum):
    UNJOINED = "unjoined"
    JOINED = "joined"
    CLOSED = "closed"


def room_for_order(order_id: str) -> str:
    return f"{ROOM_PREFIX}{order_id}"


def now_ms() -> int:
    return int(time.time() * 1000)


def build_message(
    user_id: str,
    text: Any,
    message_type: Optional[str] = None,
    platform: Optional[str] = None,
    message_id: Any = 0,
    room: Optional[str] = None,
) -> Message:
    return Message(
        id=message_id,
        sender_id=user_id,
        type=message_type or DEFAULT_MESSAGE_TYPE,
        payload={"message": text, "senderId": user_id},
        timestamp=now_ms(),
        platform=platform or DEFAULT_PLATFORM,
        room=room,
    )


def persistence_record(order_id: str, message: Message) -> dict:
    """Shape a broadcast message into the record the message store expects."""
    return {
        "order_id": order_id,
        "sender_id": message.sender_id,
        "type": message.type,
        "json": json.dumps({"message": message.payload["message"], "sender_id": message.sender_id}),
        "timestamp": message.timestamp,
        "platform": message.platform,
    }


def should_persist(platform: Optional[str]) -> bool:
    # Messages from the backend (platform "server") are already stored by it
    return platform != SERVER_PLATFORM


class ConnectionSession:
    """State of one live connection: unjoined -> joined -> closed.

    ``emit`` writes an event to this connection only. Room-wide delivery
    goes through the broadcaster.
    """

    def __init__(
        self,
        connection_id: str,
        emit: Emit,
        room_registry: RoomRegistry = registry,
        room_broadcaster: Broadcaster = broadcaster,
        persistence: PersistenceClient = persistence_client,
    ):
        self.connection_id = connection_id
        self.emit = emit
        self.registry = room_registry
        self.broadcaster = room_broadcaster
        self.persistence = persistence
        self.state = SessionState.UNJOINED

    async def join(self, event: JoinEvent) -> Optional[Session]:
        if self.state is SessionState.CLOSED:
            logger.debug(f"Ignoring join on closed connection {self.connection_id}")
            return None

        if not event.order_id or not event.user_id:
            logger.info(f"Join rejected for connection {self.connection_id}: missing orderId or userId")
            await self.emit(ERROR_EVENT, {"message": JOIN_FIELDS_REQUIRED})
            return None

        room_id = room_for_order(event.order_id)
        session = self.registry.register(
            self.connection_id,
            room_id,
            event.user_id,
            platform=event.platform,
            message_type=event.type,
            order_id=event.order_id,
        )
        self.state = SessionState.JOINED
        logger.info(f"User {event.user_id} joined order room {event.order_id} (connection {self.connection_id})")
        await self.emit(JOINED_EVENT, {"room": room_id, "userId": event.user_id})
        return session

    async def send(self, event: SendEvent, reply: Optional[Reply] = None) -> Optional[dict]:
        """Relay a message to the room.

        The acknowledgment is returned, and also handed to ``reply`` (the
        caller's one-shot ack channel) before persistence is dispatched.
        No acknowledgment is produced when the connection has not joined.
        """
        if self.state is SessionState.CLOSED:
            logger.debug(f"Ignoring send on closed connection {self.connection_id}")
            return None

        session = self.registry.lookup(self.connection_id)
        if session is None:
            self.state = SessionState.UNJOINED
            logger.info(f"Send rejected for connection {self.connection_id}: not joined")
            await self.emit(ERROR_EVENT, {"message": NOT_JOINED})
            return None

        if not event.message:
            logger.debug(f"Send rejected for connection {self.connection_id}: empty message")
            ack = {"error": MESSAGE_REQUIRED}
            if reply is not None:
                await reply(ack)
            return ack

        message = build_message(session.user_id, event.message, session.message_type, session.platform)
        await self.broadcaster.broadcast(session.room_id, NEW_MESSAGE_EVENT, message.to_wire())
        logger.debug(f"Order message sent to {session.room_id} by {session.user_id}")

        ack = {"success": True}
        if reply is not None:
            await reply(ack)

        if should_persist(session.platform):
            self.persistence.dispatch(persistence_record(session.order_id, message))
        return ack

    def disconnect(self):
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        session = self.registry.deregister(self.connection_id)
        if session is not None:
            logger.info(f"User {session.user_id} disconnected from order room {session.room_id}")


async def inject_message(
    order_id: str,
    user_id: str,
    text: Any,
    platform: Optional[str] = SERVER_PLATFORM,
    message_type: Optional[str] = DEFAULT_MESSAGE_TYPE,
    room_broadcaster: Broadcaster = broadcaster,
) -> Message:
    """Broadcast a message into an order room without a live connection.

    Injected messages come from the backend that owns them and are never persisted.
    """
    room_id = room_for_order(order_id)
    message = build_message(
        user_id,
        text,
        message_type,
        platform or SERVER_PLATFORM,
        message_id=str(now_ms()),
        room=room_id,
    )
    delivered = await room_broadcaster.broadcast(room_id, NEW_MESSAGE_EVENT, message.to_wire())
    logger.info(f"Server message sent to {room_id} ({delivered} recipients)")
    return message
