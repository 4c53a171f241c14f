from __future__ import annotations

import asyncio
import json
import logging

from backend import RedisBackend
from persistence import PersistenceClient

from conftest import DummyBackend

RECORD = {
    "order_id": "42",
    "sender_id": "u1",
    "type": "chat-message",
    "json": json.dumps({"message": "hi", "sender_id": "u1"}),
    "timestamp": 1700000000000,
    "platform": "web",
}


def test_dispatch_saves_in_background():
    backend = DummyBackend()
    client = PersistenceClient(backend)

    async def scenario():
        task = client.dispatch(RECORD)
        assert task is not None
        await client.drain()

    asyncio.run(scenario())
    assert backend.saved == [RECORD]
    assert client.pending == 0


def test_dispatch_failure_is_logged_and_swallowed(caplog):
    backend = DummyBackend(fail=True)
    client = PersistenceClient(backend)

    async def scenario():
        task = client.dispatch(RECORD)
        await task
        return task

    with caplog.at_level(logging.ERROR, logger="persistence"):
        task = asyncio.run(scenario())

    assert task.exception() is None
    assert backend.calls == 1
    assert "Failed to save message for order 42" in caplog.text


def test_disabled_client_skips_dispatch():
    backend = DummyBackend()
    client = PersistenceClient(backend, enabled=False)

    assert client.dispatch(RECORD) is None
    assert backend.calls == 0


class DummyRedis:
    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}

    async def rpush(self, key: str, value: str) -> int:
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])


def test_redis_backend_appends_record_to_order_list():
    backend = RedisBackend()
    backend.redis_client = DummyRedis()

    length = asyncio.run(backend.save_message(RECORD))

    assert length == 1
    stored = backend.redis_client.lists["order:messages:42"]
    assert [json.loads(item) for item in stored] == [RECORD]
