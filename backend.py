import json

import redis.asyncio as redis

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD
from redis_keys import REDIS_MESSAGES_KEY
from logging_config import get_logger

logger = get_logger(__name__)


class RedisBackend:
    """External message store. Records are appended to a per-order Redis list."""

    def __init__(self, host: str = REDIS_HOST, port: int = REDIS_PORT, password: str = None):
        logger.info(f"Initializing RedisBackend for {host}:{port}")
        # redis.asyncio connects lazily on the first command
        self.redis_client = redis.Redis(host=host, port=port, password=password, decode_responses=True)

    async def save_message(self, record: dict) -> int:
        """Append a message record to its order's list. Returns the new list length."""
        key = REDIS_MESSAGES_KEY.format(order_id=record["order_id"])
        length = await self.redis_client.rpush(key, json.dumps(record))
        logger.debug(f"Saved message for order {record['order_id']} to {key} (length={length})")
        return length

    async def close(self):
        logger.info("Closing Redis connection pool")
        await self.redis_client.aclose()


redis_backend = RedisBackend(password=REDIS_PASSWORD)
