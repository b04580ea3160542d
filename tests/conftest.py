"""
Shared test fixtures.

The socket.io client is replaced by ``FakeSocketClient`` through the
transport manager's ``client_factory`` so tests run without a dispatch
backend.  ``FakeBackend`` decides which transports accept connections and
how each outbound event is acknowledged.
"""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime
from typing import Any, AsyncGenerator, Callable
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from socketio import exceptions as sio_exceptions

from src.config import Settings
from src.infrastructure.transport import TransportManager

CHICAGO = ZoneInfo("America/Chicago")
NOON = datetime(2026, 10, 18, 12, 0, tzinfo=CHICAGO)

DRIVER_PAYLOAD = {
    "name": "James",
    "carColor": "Black",
    "carMakeModel": "Toyota Camry",
    "licensePlate": "TNH-3537",
}


# ── Fake socket.io ────────────────────────────────────────────────────


class FakeSocketClient:
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend
        self.handlers: dict[str, Callable] = {}
        self.connected = False

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def connect(self, url, transports=None, wait_timeout=None, **kwargs):
        transport = transports[0]
        self.backend.attempts.append(transport)
        if self.backend.offline or transport in self.backend.down_transports:
            raise sio_exceptions.ConnectionError(f"{transport} refused")
        self.connected = True
        self.backend.live = self

    async def call(self, event, data=None, namespace=None, timeout=60):
        self.backend.calls.append((event, data))
        reply = self.backend.replies.get(event)
        if reply is None:
            await asyncio.sleep(timeout)
            raise sio_exceptions.TimeoutError()
        if isinstance(reply, asyncio.Future):
            return await reply
        if callable(reply):
            reply = reply(data)
            if inspect.isawaitable(reply):
                reply = await reply
        return reply

    async def disconnect(self):
        self.connected = False

    # ── Test helpers ─────────────────────────────────────────────────

    async def deliver(self, event: str, payload: Any = None) -> None:
        await self.handlers["*"](event, payload)

    async def drop(self, reason: str = "transport close") -> None:
        self.connected = False
        await self.handlers["disconnect"](reason)


class FakeBackend:
    def __init__(self):
        self.offline = False
        self.down_transports: set[str] = set()
        self.attempts: list[str] = []
        self.calls: list[tuple[str, Any]] = []
        self.replies: dict[str, Any] = {}
        self.live: FakeSocketClient | None = None

    def factory(self) -> FakeSocketClient:
        return FakeSocketClient(self)

    def calls_for(self, event: str) -> list[Any]:
        return [data for name, data in self.calls if name == event]


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        backend_url="http://dispatch.test",
        connect_timeout_seconds=1.0,
        reconnect_base_delay_seconds=1.0,
        reconnect_max_delay_seconds=5.0,
        reconnect_max_attempts=3,
        force_reconnect_delay_seconds=0.0,
        request_deadline_ms=50,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def transport(config, backend, sleeper) -> AsyncGenerator[TransportManager, None]:
    manager = TransportManager(config, backend.factory, sleep=sleeper)
    yield manager
    await manager.close()
