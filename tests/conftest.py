"""Shared fixtures: fake sockets, frame factories and HTTP mocking."""

import asyncio
import itertools
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any, NamedTuple
from unittest.mock import AsyncMock

import pytest
from aiohttp import WSMsgType
from aioresponses import aioresponses

from twitch_events import (
    ClientConfig,
    EventSubSession,
    Frame,
    NotificationRouter,
    SessionCallbacks,
    SessionConfig,
)
from twitch_events._parsing import decode_frame

TEST_CLIENT_ID = "test_client_id"
TEST_TOKEN = "test_token_abcd"
TEST_SOCKET_URL = "wss://eventsub.test/ws"


class FakeMessage(NamedTuple):
    type: WSMsgType
    data: Any = None
    extra: Any = None


class FakeConnection:
    """In-memory socket fed by the test through :meth:`push`."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.queue: asyncio.Queue[FakeMessage] = asyncio.Queue()
        self.closed_with: tuple[int, str] | None = None
        self.close_code: int | None = None

    def push(self, frame: dict[str, Any] | str) -> None:
        data = frame if isinstance(frame, str) else json.dumps(frame)
        self.queue.put_nowait(FakeMessage(WSMsgType.TEXT, data))

    def server_close(self, code: int, reason: str = "") -> None:
        self.close_code = code
        self.queue.put_nowait(FakeMessage(WSMsgType.CLOSE, code, reason))

    async def receive(self) -> FakeMessage:
        return await self.queue.get()

    async def close(self, *, code: int = 1000, message: bytes = b"") -> bool:
        if self.closed_with is not None:
            return False
        self.closed_with = (code, message.decode())
        self.close_code = code
        self.queue.put_nowait(FakeMessage(WSMsgType.CLOSED))
        return True


class FakeConnector:
    """Connector that hands out :class:`FakeConnection` objects."""

    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []
        self.opened_at: list[float] = []
        self.failures = 0

    @property
    def urls(self) -> list[str]:
        return [connection.url for connection in self.connections]

    async def __call__(self, url: str) -> FakeConnection:
        if self.failures:
            self.failures -= 1
            msg = "connection refused"
            raise OSError(msg)
        connection = FakeConnection(url)
        self.opened_at.append(asyncio.get_running_loop().time())
        self.connections.append(connection)
        return connection


class FrameFactory:
    """Builds raw EventSub frames with unique message ids."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    def _frame(
        self,
        message_type: str,
        payload: dict[str, Any],
        *,
        message_id: str | None = None,
        **metadata: str,
    ) -> dict[str, Any]:
        return {
            "metadata": {
                "message_id": message_id or f"msg-{next(self._ids)}",
                "message_type": message_type,
                "message_timestamp": "2024-01-01T00:00:00Z",
                **metadata,
            },
            "payload": payload,
        }

    def welcome(
        self,
        session_id: str = "session-1",
        *,
        keepalive: int | None = 10,
        message_id: str | None = None,
        connected_at: str = "2024-01-01T00:00:00Z",
    ) -> dict[str, Any]:
        return self._frame(
            "session_welcome",
            {
                "session": {
                    "id": session_id,
                    "status": "connected",
                    "keepalive_timeout_seconds": keepalive,
                    "reconnect_url": None,
                    "connected_at": connected_at,
                }
            },
            message_id=message_id,
        )

    def keepalive(self, *, message_id: str | None = None) -> dict[str, Any]:
        return self._frame("session_keepalive", {}, message_id=message_id)

    def reconnect(
        self,
        reconnect_url: str | None,
        session_id: str = "session-1",
        *,
        message_id: str | None = None,
    ) -> dict[str, Any]:
        return self._frame(
            "session_reconnect",
            {
                "session": {
                    "id": session_id,
                    "status": "reconnecting",
                    "keepalive_timeout_seconds": None,
                    "reconnect_url": reconnect_url,
                    "connected_at": "2024-01-01T00:00:00Z",
                }
            },
            message_id=message_id,
        )

    def notification(
        self,
        subscription_type: str = "channel.chat.message",
        version: str = "1",
        *,
        event: dict[str, Any] | None = None,
        message_id: str | None = None,
    ) -> dict[str, Any]:
        return self._frame(
            "notification",
            {
                "subscription": {
                    "id": "sub-1",
                    "status": "enabled",
                    "type": subscription_type,
                    "version": version,
                    "cost": 0,
                    "condition": {"broadcaster_user_id": "1"},
                    "transport": {"method": "websocket", "session_id": "session-1"},
                    "created_at": "2024-01-01T00:00:00Z",
                },
                "event": event if event is not None else {},
            },
            message_id=message_id,
            subscription_type=subscription_type,
            subscription_version=version,
        )

    def revocation(
        self,
        subscription_type: str = "channel.follow",
        version: str = "2",
        *,
        message_id: str | None = None,
    ) -> dict[str, Any]:
        return self._frame(
            "revocation",
            {
                "subscription": {
                    "id": "sub-2",
                    "status": "authorization_revoked",
                    "type": subscription_type,
                    "version": version,
                    "condition": {"broadcaster_user_id": "1"},
                    "transport": {"method": "websocket", "session_id": "session-1"},
                }
            },
            message_id=message_id,
            subscription_type=subscription_type,
            subscription_version=version,
        )

    def parsed(self, raw: dict[str, Any]) -> Frame:
        return decode_frame(json.dumps(raw))


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or fail the test."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Wait until a condition holds."""
    return wait_for


@pytest.fixture
def frames() -> FrameFactory:
    """Factory for raw EventSub frames."""
    return FrameFactory()


@pytest.fixture
def connector() -> FakeConnector:
    """Connector producing in-memory sockets."""
    return FakeConnector()


@pytest.fixture
def callbacks() -> SessionCallbacks:
    """Callbacks backed by AsyncMock objects."""
    return SessionCallbacks(
        on_message=AsyncMock(),
        on_welcome=AsyncMock(),
        on_keepalive=AsyncMock(),
        on_notification=AsyncMock(),
        on_reconnect=AsyncMock(),
        on_revocation=AsyncMock(),
        on_close=AsyncMock(),
    )


@pytest.fixture
def session_config() -> SessionConfig:
    """Session settings pointing at the fake socket URL."""
    return SessionConfig(url=TEST_SOCKET_URL, reconnect_delay_ms=0)


@pytest.fixture
async def session(
    connector: FakeConnector,
    callbacks: SessionCallbacks,
    session_config: SessionConfig,
):
    """Unstarted session wired to the fake connector, closed on teardown."""
    session = EventSubSession(callbacks=callbacks, config=session_config, connector=connector)
    yield session
    await session.close()


@pytest.fixture
def router() -> NotificationRouter:
    """Empty notification router."""
    return NotificationRouter()


@pytest.fixture
def mock_handler() -> AsyncMock:
    """Async handler mock."""
    return AsyncMock()


@pytest.fixture
def client_config() -> ClientConfig:
    """Client settings without retry delays."""
    return ClientConfig(retry_attempts=1, retry_backoff=0.0, retry_max_delay=0.0)


@pytest.fixture
def mock_response():
    """aioresponses mock for HTTP requests."""
    with aioresponses() as mock:
        yield mock


@pytest.fixture
def helix_pattern() -> Callable[[str], re.Pattern[str]]:
    """Regex matching a Helix endpoint with any query string."""

    def pattern(path: str) -> re.Pattern[str]:
        return re.compile(rf"^https://api\.twitch\.tv/helix/{re.escape(path)}(\?.*)?$")

    return pattern
