"""Tests for NotificationRouter functionality."""

import asyncio
from functools import partial
from unittest.mock import AsyncMock

import pytest

from twitch_events import SubscriptionType


class TestNotificationRouter:
    """Test notification dispatching and handler registration."""

    async def test_dispatch_to_type_handler(self, router, mock_handler, frames):
        """Notification should reach handlers registered for its type."""
        frame = frames.parsed(frames.notification("channel.chat.message", "1"))
        router.on(SubscriptionType.CHANNEL_CHAT_MESSAGE)(mock_handler)

        await router.dispatch(frame)

        mock_handler.assert_called_once_with(frame)

    async def test_version_filter(self, router, frames):
        """Version-specific handlers should only see their version."""
        v1 = AsyncMock()
        v2 = AsyncMock()
        router.on("channel.follow", "1")(v1)
        router.on("channel.follow", "2")(v2)

        await router.dispatch(frames.parsed(frames.notification("channel.follow", "2")))

        v1.assert_not_called()
        v2.assert_called_once()

    async def test_dispatch_to_any_handler(self, router, mock_handler, frames):
        """Wildcard handlers should see every notification."""
        frame = frames.parsed(frames.notification("stream.online", "1"))
        router.on_any()(mock_handler)

        await router.dispatch(frame)

        mock_handler.assert_called_once_with(frame)

    async def test_dispatch_order(self, router, frames):
        """Wildcard, then type, then type and version handlers."""
        order: list[str] = []
        router.on("channel.cheer", "1")(AsyncMock(side_effect=lambda f: order.append("exact")))
        router.on("channel.cheer")(AsyncMock(side_effect=lambda f: order.append("type")))
        router.on_any()(AsyncMock(side_effect=lambda f: order.append("any")))

        await router.dispatch(frames.parsed(frames.notification("channel.cheer", "1")))

        assert order == ["any", "type", "exact"]

    async def test_ignores_non_notifications(self, router, mock_handler, frames):
        """Lifecycle frames should not reach any handler."""
        router.on_any()(mock_handler)

        await router.dispatch(frames.parsed(frames.keepalive()))
        await router.dispatch(frames.parsed(frames.revocation()))

        mock_handler.assert_not_called()

    async def test_no_error_when_no_handlers(self, router, frames):
        """Dispatching without handlers should not raise error."""
        await router.dispatch(frames.parsed(frames.notification()))

    def test_decorator_returns_handler(self, router):
        """The decorator should return the original function."""

        async def handler(frame):
            _ = frame

        assert router.on("stream.offline")(handler) is handler

    def test_sync_handler_rejected(self, router):
        """Registering a sync handler should raise TypeError."""

        def sync_handler(frame):
            _ = frame

        with pytest.raises(TypeError, match="Handler sync_handler must be async"):
            router.on_any()(sync_handler)

    async def test_partial_of_async_handler_accepted(self, router, frames):
        """functools.partial wrapping an async function should be accepted."""
        seen: list[str] = []

        async def handler(tag, frame):
            seen.append(f"{tag}:{frame.message_id}")

        router.on_any()(partial(handler, "p"))
        frame = frames.parsed(frames.notification(message_id="m-1"))

        await router.dispatch(frame)

        assert seen == ["p:m-1"]

    async def test_all_handlers_execute_despite_failures(self, router, frames, caplog):
        """Handler errors should be logged and later handlers still run."""
        handler1 = AsyncMock(side_effect=ValueError("Handler 1 failed"))
        handler2 = AsyncMock()
        router.on("channel.raid")(handler1)
        router.on("channel.raid")(handler2)
        frame = frames.parsed(frames.notification("channel.raid", "1"))

        await router.dispatch(frame)

        handler2.assert_called_once_with(frame)
        assert "failed for message" in caplog.text

    async def test_cancellation_propagates(self, router, frames):
        """CancelledError from a handler should not be swallowed."""
        router.on_any()(AsyncMock(side_effect=asyncio.CancelledError()))

        with pytest.raises(asyncio.CancelledError):
            await router.dispatch(frames.parsed(frames.notification()))

    async def test_system_exit_not_caught(self, router, frames):
        """SystemExit should propagate without being caught."""

        async def exit_handler(frame):
            _ = frame
            raise SystemExit(1)

        router.on_any()(exit_handler)

        with pytest.raises(SystemExit):
            await router.dispatch(frames.parsed(frames.notification()))
