import asyncio
from typing import Optional, Set

from backend import redis_backend, RedisBackend
from constants import PERSISTENCE_ENABLED
from logging_config import get_logger

logger = get_logger(__name__)


class PersistenceClient:
    """Best-effort, fire-and-forget persistence of relayed messages.

    ``dispatch`` never raises and never blocks the caller: the write runs in a
    detached task and any failure is logged and dropped. No retries.
    """

    def __init__(self, backend: RedisBackend, enabled: bool = True):
        self.backend = backend
        self.enabled = enabled
        # Strong references to in-flight saves so they are not garbage collected mid-write
        self._pending: Set[asyncio.Task] = set()

    async def save(self, record: dict):
        await self.backend.save_message(record)

    async def _save_quietly(self, record: dict):
        try:
            await self.save(record)
            logger.debug(f"Persisted message for order {record.get('order_id')}")
        except Exception as e:
            logger.error(f"Failed to save message for order {record.get('order_id')}: {e}", exc_info=True)

    def dispatch(self, record: dict) -> Optional[asyncio.Task]:
        if not self.enabled:
            logger.debug("Persistence disabled, skipping save")
            return None
        task = asyncio.create_task(self._save_quietly(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self):
        """Wait for every in-flight save to finish."""
        if self._pending:
            logger.info(f"Waiting for {len(self._pending)} pending message saves")
            await asyncio.gather(*list(self._pending), return_exceptions=True)


persistence_client = PersistenceClient(redis_backend, enabled=PERSISTENCE_ENABLED)
