"""Builders for EventSub subscription descriptors.

A descriptor says what to subscribe to and where to deliver it. Only the
socket transport is consumed by :class:`~twitch_events.session.EventSubSession`;
webhook and conduit transports are data only.

Example:
    .. code-block:: python

        async def on_welcome(frame, is_reconnected):
            if not is_reconnected:
                await client.create_eventsub_subscription(
                    channel_chat_message(session, broadcaster_id, user_id)
                )
"""

from enum import StrEnum
from typing import Annotated, Literal, Protocol

from pydantic import Field

from .models import BaseTwitchModel


class SubscriptionType(StrEnum):
    """Subscription types with builders in this module."""

    CHANNEL_CHAT_MESSAGE = "channel.chat.message"
    CHANNEL_FOLLOW = "channel.follow"
    CHANNEL_UPDATE = "channel.update"
    CHANNEL_SUBSCRIBE = "channel.subscribe"
    CHANNEL_CHEER = "channel.cheer"
    CHANNEL_RAID = "channel.raid"
    CHANNEL_BAN = "channel.ban"
    STREAM_ONLINE = "stream.online"
    STREAM_OFFLINE = "stream.offline"


SUBSCRIPTION_VERSIONS: dict[SubscriptionType, str] = {
    SubscriptionType.CHANNEL_CHAT_MESSAGE: "1",
    SubscriptionType.CHANNEL_FOLLOW: "2",
    SubscriptionType.CHANNEL_UPDATE: "2",
    SubscriptionType.CHANNEL_SUBSCRIBE: "1",
    SubscriptionType.CHANNEL_CHEER: "1",
    SubscriptionType.CHANNEL_RAID: "1",
    SubscriptionType.CHANNEL_BAN: "1",
    SubscriptionType.STREAM_ONLINE: "1",
    SubscriptionType.STREAM_OFFLINE: "1",
}
"""Version each builder requests."""


class WebSocketTransport(BaseTwitchModel):
    """Deliver notifications to an EventSub socket session."""

    method: Literal["websocket"] = "websocket"
    session_id: str


class WebhookTransport(BaseTwitchModel):
    """Deliver notifications to an HTTPS callback."""

    method: Literal["webhook"] = "webhook"
    callback: str
    secret: str = Field(repr=False)


class ConduitTransport(BaseTwitchModel):
    """Deliver notifications to the shards of a conduit."""

    method: Literal["conduit"] = "conduit"
    conduit_id: str


Transport = Annotated[
    WebSocketTransport | WebhookTransport | ConduitTransport,
    Field(discriminator="method"),
]


class Subscription(BaseTwitchModel):
    """Request body for creating a subscription."""

    type: str
    version: str
    condition: dict[str, str]
    transport: Transport


class SupportsTransport(Protocol):
    """Anything that can describe its own delivery transport."""

    def transport(self) -> WebSocketTransport:
        """Return the transport bound to the current session id."""
        ...


type TransportTarget = (
    SupportsTransport | WebSocketTransport | WebhookTransport | ConduitTransport | str
)


def websocket_transport(session_id: str) -> WebSocketTransport:
    """Build a socket transport.

    Args:
        session_id: Id from the welcome frame of the session.

    Returns:
        Socket transport descriptor.
    """
    return WebSocketTransport(session_id=session_id)


def webhook_transport(callback: str, secret: str) -> WebhookTransport:
    """Build a webhook transport."""
    return WebhookTransport(callback=callback, secret=secret)


def conduit_transport(conduit_id: str) -> ConduitTransport:
    """Build a conduit transport."""
    return ConduitTransport(conduit_id=conduit_id)


def resolve_transport(
    target: TransportTarget,
) -> WebSocketTransport | WebhookTransport | ConduitTransport:
    """Turn a session, transport, or raw session id into a transport.

    Args:
        target: Session handle, ready transport, or socket session id.

    Returns:
        Transport descriptor.
    """
    if isinstance(target, str):
        return websocket_transport(target)
    if isinstance(target, WebSocketTransport | WebhookTransport | ConduitTransport):
        return target
    return target.transport()


def build_subscription(
    subscription_type: SubscriptionType,
    target: TransportTarget,
    **condition: str,
) -> Subscription:
    """Build a descriptor for any supported subscription type.

    Args:
        subscription_type: Event type to subscribe to.
        target: Where to deliver notifications.
        **condition: Condition parameters of the subscription type.

    Returns:
        Subscription descriptor using the type's supported version.
    """
    return Subscription(
        type=subscription_type.value,
        version=SUBSCRIPTION_VERSIONS[subscription_type],
        condition=condition,
        transport=resolve_transport(target),
    )


def channel_chat_message(
    target: TransportTarget, broadcaster_user_id: str, user_id: str
) -> Subscription:
    """Chat messages in a channel.

    Args:
        target: Where to deliver notifications.
        broadcaster_user_id: Channel to read chat from.
        user_id: User to read chat as, usually the token owner.

    Returns:
        ``channel.chat.message`` descriptor.
    """
    return build_subscription(
        SubscriptionType.CHANNEL_CHAT_MESSAGE,
        target,
        broadcaster_user_id=broadcaster_user_id,
        user_id=user_id,
    )


def channel_follow(
    target: TransportTarget, broadcaster_user_id: str, moderator_user_id: str
) -> Subscription:
    """New followers of a channel (requires a moderator of the channel)."""
    return build_subscription(
        SubscriptionType.CHANNEL_FOLLOW,
        target,
        broadcaster_user_id=broadcaster_user_id,
        moderator_user_id=moderator_user_id,
    )


def channel_update(target: TransportTarget, broadcaster_user_id: str) -> Subscription:
    """Title, category or language changes of a channel."""
    return build_subscription(
        SubscriptionType.CHANNEL_UPDATE,
        target,
        broadcaster_user_id=broadcaster_user_id,
    )


def channel_subscribe(target: TransportTarget, broadcaster_user_id: str) -> Subscription:
    """New subscribers of a channel."""
    return build_subscription(
        SubscriptionType.CHANNEL_SUBSCRIBE,
        target,
        broadcaster_user_id=broadcaster_user_id,
    )


def channel_cheer(target: TransportTarget, broadcaster_user_id: str) -> Subscription:
    """Bits cheered in a channel."""
    return build_subscription(
        SubscriptionType.CHANNEL_CHEER,
        target,
        broadcaster_user_id=broadcaster_user_id,
    )


def channel_raid(target: TransportTarget, to_broadcaster_user_id: str) -> Subscription:
    """Raids into a channel."""
    return build_subscription(
        SubscriptionType.CHANNEL_RAID,
        target,
        to_broadcaster_user_id=to_broadcaster_user_id,
    )


def channel_ban(target: TransportTarget, broadcaster_user_id: str) -> Subscription:
    """Bans and timeouts in a channel."""
    return build_subscription(
        SubscriptionType.CHANNEL_BAN,
        target,
        broadcaster_user_id=broadcaster_user_id,
    )


def stream_online(target: TransportTarget, broadcaster_user_id: str) -> Subscription:
    """Broadcast start."""
    return build_subscription(
        SubscriptionType.STREAM_ONLINE,
        target,
        broadcaster_user_id=broadcaster_user_id,
    )


def stream_offline(target: TransportTarget, broadcaster_user_id: str) -> Subscription:
    """Broadcast stop."""
    return build_subscription(
        SubscriptionType.STREAM_OFFLINE,
        target,
        broadcaster_user_id=broadcaster_user_id,
    )
