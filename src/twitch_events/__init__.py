"""Async client for Twitch EventSub over websockets.

Receive real-time Twitch events through one long-lived session that survives
server-requested reconnects, dropped connections and missed keepalives.

Main components:
    EventSubSession: Socket session state machine with lifecycle callbacks
    SessionCallbacks: Hooks the session invokes for each frame kind
    NotificationRouter: Decorator-based notification handler registration
    HelixClient: REST client for subscriptions, users, chat and moderation
    Frame: Decoded socket frame with typed accessors

Exceptions:
    TwitchError: Base exception for API errors
    AuthError: Invalid credentials
    RequestTimeoutError: Request cancelled by its timeout guard
    FrameError: Undecodable socket frame

Important:
    Register subscriptions from ``on_welcome`` only when ``is_reconnected`` is
    False: a reconnected session keeps the subscriptions of the old one.

Example:
    .. code-block:: python

        import asyncio
        from twitch_events import (
            EventSubSession, HelixClient, NotificationRouter, SessionCallbacks,
            channel_chat_message,
        )

        router = NotificationRouter()

        @router.on("channel.chat.message", "1")
        async def handle_chat(frame):
            print(frame.event["message"]["text"])

        async def main():
            async with HelixClient(client_id="...", token="...") as client:
                auth = (await client.validate_token()).data

                async def on_welcome(frame, is_reconnected):
                    if not is_reconnected:
                        await client.create_eventsub_subscription(
                            channel_chat_message(session, auth.user_id, auth.user_id)
                        )

                session = EventSubSession(
                    authorization=auth,
                    callbacks=SessionCallbacks(
                        on_welcome=on_welcome, on_notification=router.dispatch
                    ),
                )
                async with session:
                    await session.wait_closed()

        asyncio.run(main())
"""

from .client import HelixClient
from .config import ClientConfig, SessionConfig
from .exceptions import (
    AuthError,
    FrameError,
    RequestAbortedError,
    RequestTimeoutError,
    TwitchError,
)
from .fetch import RawResponse, RequestExecutor, serialize_params
from .models import ChatMessageEvent, Frame, MessageType, Metadata, SessionInfo, SubscriptionInfo
from .resources import ApiResponse, Authorization, ChannelInformationUpdate
from .router import HandlerFunc, NotificationRouter
from .session import EventSubSession, SessionCallbacks, SessionState, WebSocketConnector
from .subscriptions import (
    ConduitTransport,
    Subscription,
    SubscriptionType,
    WebhookTransport,
    WebSocketTransport,
    channel_ban,
    channel_chat_message,
    channel_cheer,
    channel_follow,
    channel_raid,
    channel_subscribe,
    channel_update,
    stream_offline,
    stream_online,
)
from .version import __version__

__all__: list[str] = [
    "ApiResponse",
    "AuthError",
    "Authorization",
    "ChannelInformationUpdate",
    "ChatMessageEvent",
    "ClientConfig",
    "ConduitTransport",
    "EventSubSession",
    "Frame",
    "FrameError",
    "HandlerFunc",
    "HelixClient",
    "MessageType",
    "Metadata",
    "NotificationRouter",
    "RawResponse",
    "RequestAbortedError",
    "RequestExecutor",
    "RequestTimeoutError",
    "SessionCallbacks",
    "SessionConfig",
    "SessionInfo",
    "SessionState",
    "Subscription",
    "SubscriptionInfo",
    "SubscriptionType",
    "TwitchError",
    "WebSocketConnector",
    "WebSocketTransport",
    "WebhookTransport",
    "__version__",
    "channel_ban",
    "channel_chat_message",
    "channel_cheer",
    "channel_follow",
    "channel_raid",
    "channel_subscribe",
    "channel_update",
    "serialize_params",
    "stream_offline",
    "stream_online",
]
