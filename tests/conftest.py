from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from broadcast import broadcaster
from persistence import persistence_client
from registry import registry


class DummyWebSocket:
    """Stands in for a starlette WebSocket in broadcast tests."""

    def __init__(self, *, fail: bool = False, delay: float = 0) -> None:
        self.fail = fail
        self.delay = delay
        self.sent: list[dict[str, Any]] = []

    async def send_text(self, text: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


class EmitRecorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, event: str, data: dict[str, Any]) -> None:
        self.events.append((event, data))


class DummyBackend:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.saved: list[dict[str, Any]] = []
        self.calls = 0

    async def save_message(self, record: dict[str, Any]) -> int:
        self.calls += 1
        if self.fail:
            raise ConnectionError("store unreachable")
        self.saved.append(record)
        return len(self.saved)


class DispatchRecorder:
    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def dispatch(self, record: dict[str, Any]) -> None:
        self.records.append(record)


@pytest.fixture(autouse=True)
def _reset_relay_state():
    registry.clear()
    broadcaster.connections.clear()
    yield
    registry.clear()
    broadcaster.connections.clear()


@pytest.fixture()
def dispatched(monkeypatch: pytest.MonkeyPatch) -> DispatchRecorder:
    """Record persistence dispatches made by the app instead of writing to Redis."""
    recorder = DispatchRecorder()
    monkeypatch.setattr(persistence_client, "dispatch", recorder.dispatch)
    return recorder
