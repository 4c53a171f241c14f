import threading
from typing import Dict, FrozenSet, List, Optional, Set

from constants import DEFAULT_PLATFORM, DEFAULT_MESSAGE_TYPE
from schemas.sessions import Session
from logging_config import get_logger

logger = get_logger(__name__)


class RoomRegistry:
    """In-memory room membership.

    Format:
    - sessions: {connection_id: Session}
    - rooms: {room_id: {connection_id, ...}}

    Both maps are only touched under one lock, so a connection is either in
    both (session + member of exactly its session's room) or in neither.
    Nothing awaits while the lock is held.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}
        self._rooms: Dict[str, Set[str]] = {}

    def register(
        self,
        connection_id: str,
        room_id: str,
        user_id: str,
        platform: Optional[str] = None,
        message_type: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Session:
        session = Session(
            connection_id=connection_id,
            room_id=room_id,
            order_id=order_id if order_id is not None else room_id,
            user_id=user_id,
            platform=platform or DEFAULT_PLATFORM,
            message_type=message_type or DEFAULT_MESSAGE_TYPE,
        )
        with self._lock:
            previous = self._sessions.get(connection_id)
            if previous is not None and previous.room_id != room_id:
                # A connection belongs to one room at a time: joining another room moves it
                self._discard_member(previous.room_id, connection_id)
                logger.info(f"Connection {connection_id} moved from room {previous.room_id} to {room_id}")
            self._sessions[connection_id] = session
            self._rooms.setdefault(room_id, set()).add(connection_id)
            member_count = len(self._rooms[room_id])
        logger.debug(f"Registered connection {connection_id} in room {room_id} ({member_count} members)")
        return session

    def lookup(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(connection_id)

    def members(self, room_id: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._rooms.get(room_id, ()))

    def deregister(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.pop(connection_id, None)
            if session is not None:
                self._discard_member(session.room_id, connection_id)
        if session is not None:
            logger.debug(f"Deregistered connection {connection_id} from room {session.room_id}")
        return session

    def rooms(self) -> List[str]:
        with self._lock:
            return list(self._rooms)

    def clear(self):
        with self._lock:
            self._sessions.clear()
            self._rooms.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _discard_member(self, room_id: str, connection_id: str):
        # Caller holds the lock
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room_id]


registry = RoomRegistry()
