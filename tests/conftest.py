"""Shared test fixtures for the team chat transport test suite.

Provides an in-memory stand-in for the websockets client connection, a fake
server that hands those connections out in place of ``websockets.connect``,
and fast-reconnect settings.
"""

from __future__ import annotations

import asyncio
import json

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from typing import Any
from unittest.mock import patch

import pytest
import pytest_asyncio

from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from teamchat.core.constants import Settings, clear_settings_cache
from teamchat.integrations.team_chat_client import TeamChatClient

TEST_TOKEN = "test-token-abc123"
TEST_TEAM = "team-a"

_END = object()


# ============================================================================
# Test Isolation: Settings Cache
# ============================================================================


@pytest.fixture(autouse=True)
def clear_settings() -> Generator[None, None, None]:
    """Clear cached settings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Fake WebSocket Connection
# ============================================================================


class FakeConnection:
    """In-memory replacement for a websockets ClientConnection."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.sent: list[str] = []
        self.closed = False
        self.close_calls = 0
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(_END)

    def __aiter__(self) -> AsyncGenerator[str, None]:
        return self._iter()

    async def _iter(self) -> AsyncGenerator[str, None]:
        while True:
            item = await self._incoming.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    # Server-side controls

    def push(self, frame: dict[str, Any] | str | bytes) -> None:
        """Deliver a frame to the client."""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._incoming.put_nowait(frame)

    def drop(self, code: int | None = None, reason: str = "") -> None:
        """Abnormal closure (network failure or server error close)."""
        rcvd = Close(code, reason) if code is not None else None
        self.closed = True
        self._incoming.put_nowait(ConnectionClosedError(rcvd, None))

    def finish(self) -> None:
        """Clean closure initiated by the server."""
        self.closed = True
        self._incoming.put_nowait(_END)

    def sent_frames(self) -> list[dict[str, Any]]:
        return [json.loads(m) for m in self.sent]

    def sent_types(self) -> list[str]:
        return [f["type"] for f in self.sent_frames()]


class FakeServer:
    """Hands out FakeConnections in place of ``websockets.connect``."""

    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []
        self.connect_kwargs: list[dict[str, Any]] = []
        self.failures = 0

    async def connect(self, url: str, **kwargs: Any) -> FakeConnection:
        self.connect_kwargs.append(kwargs)
        if self.failures:
            self.failures -= 1
            raise OSError("Connection refused")
        conn = FakeConnection(url)
        self.connections.append(conn)
        return conn

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]

    @property
    def open_connections(self) -> list[FakeConnection]:
        return [c for c in self.connections if not c.closed]

    @property
    def attempts(self) -> int:
        return len(self.connect_kwargs)


@pytest.fixture
def fake_server() -> Generator[FakeServer, None, None]:
    server = FakeServer()
    with patch("websockets.connect", new=server.connect):
        yield server


# ============================================================================
# Client Fixtures
# ============================================================================


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with a short reconnect delay and heartbeat disabled."""
    return Settings(
        ws_url="ws://chat.test",
        reconnect_delay=0.05,
        open_timeout=1.0,
        close_timeout=1.0,
        heartbeat_interval=None,
    )


@pytest_asyncio.fixture
async def client(fast_settings: Settings, fake_server: FakeServer) -> AsyncGenerator[TeamChatClient, None]:
    chat = TeamChatClient(settings=fast_settings, token=TEST_TOKEN)
    yield chat
    await chat.close()


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Poll a predicate on the event loop until it holds or the timeout expires."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait


def chat_message(msg_id: str, body: str = "hi", team_id: str = TEST_TEAM) -> dict[str, Any]:
    """Wire-format chat message as the server sends it."""
    return {
        "id": msg_id,
        "teamId": team_id,
        "senderId": "user-2",
        "message": body,
        "createdAt": "2025-01-15T10:30:00Z",
        "sender": {"firstName": "Ada", "lastName": "Lovelace"},
    }


@pytest.fixture
def make_message() -> Callable[..., dict[str, Any]]:
    return chat_message
