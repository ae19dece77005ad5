"""Classify EventSub frames.

Every well-formed frame satisfies exactly one lifecycle predicate. Within
notifications, the specific predicates compare both subscription type and
version exactly; a notification for a type or version not listed here matches
none of them and should be treated as an unknown event.
"""

from .models import Frame, MessageType
from .subscriptions import SUBSCRIPTION_VERSIONS, SubscriptionType


def is_session_welcome(frame: Frame) -> bool:
    """First frame on a new connection, carries the session id."""
    return frame.metadata.message_type == MessageType.SESSION_WELCOME


def is_session_keepalive(frame: Frame) -> bool:
    """Heartbeat sent while no notification is pending."""
    return frame.metadata.message_type == MessageType.SESSION_KEEPALIVE


def is_notification(frame: Frame) -> bool:
    """An event the session is subscribed to occurred."""
    return frame.metadata.message_type == MessageType.NOTIFICATION


def is_session_reconnect(frame: Frame) -> bool:
    """Server asks the client to move to a new URL."""
    return frame.metadata.message_type == MessageType.SESSION_RECONNECT


def is_revocation(frame: Frame) -> bool:
    """Server cancelled a subscription."""
    return frame.metadata.message_type == MessageType.REVOCATION


def classify(frame: Frame) -> MessageType | None:
    """Return the lifecycle category of a frame.

    Args:
        frame: Decoded frame.

    Returns:
        Matching category, or None for a message type this library does not know.
    """
    try:
        return MessageType(frame.metadata.message_type)
    except ValueError:
        return None


def notification_key(frame: Frame) -> tuple[str, str] | None:
    """Return ``(subscription_type, subscription_version)`` of a notification.

    Args:
        frame: Decoded frame.

    Returns:
        Type and version, or None if the frame is not a notification or lacks them.
    """
    if not is_notification(frame):
        return None
    metadata = frame.metadata
    if metadata.subscription_type is None or metadata.subscription_version is None:
        return None
    return metadata.subscription_type, metadata.subscription_version


def _is_notification_of(frame: Frame, subscription_type: SubscriptionType) -> bool:
    return notification_key(frame) == (
        subscription_type.value,
        SUBSCRIPTION_VERSIONS[subscription_type],
    )


def is_channel_chat_message(frame: Frame) -> bool:
    """``channel.chat.message`` version 1."""
    return _is_notification_of(frame, SubscriptionType.CHANNEL_CHAT_MESSAGE)


def is_channel_follow(frame: Frame) -> bool:
    """``channel.follow`` version 2."""
    return _is_notification_of(frame, SubscriptionType.CHANNEL_FOLLOW)


def is_channel_update(frame: Frame) -> bool:
    """``channel.update`` version 2."""
    return _is_notification_of(frame, SubscriptionType.CHANNEL_UPDATE)


def is_channel_subscribe(frame: Frame) -> bool:
    """``channel.subscribe`` version 1."""
    return _is_notification_of(frame, SubscriptionType.CHANNEL_SUBSCRIBE)


def is_channel_cheer(frame: Frame) -> bool:
    """``channel.cheer`` version 1."""
    return _is_notification_of(frame, SubscriptionType.CHANNEL_CHEER)


def is_channel_raid(frame: Frame) -> bool:
    """``channel.raid`` version 1."""
    return _is_notification_of(frame, SubscriptionType.CHANNEL_RAID)


def is_channel_ban(frame: Frame) -> bool:
    """``channel.ban`` version 1."""
    return _is_notification_of(frame, SubscriptionType.CHANNEL_BAN)


def is_stream_online(frame: Frame) -> bool:
    """``stream.online`` version 1."""
    return _is_notification_of(frame, SubscriptionType.STREAM_ONLINE)


def is_stream_offline(frame: Frame) -> bool:
    """``stream.offline`` version 1."""
    return _is_notification_of(frame, SubscriptionType.STREAM_OFFLINE)
