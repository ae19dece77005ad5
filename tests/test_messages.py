"""Tests for frame classification predicates."""

import pytest

from twitch_events import MessageType, messages
from twitch_events.messages import classify, notification_key

LIFECYCLE_PREDICATES = [
    messages.is_session_welcome,
    messages.is_session_keepalive,
    messages.is_notification,
    messages.is_session_reconnect,
    messages.is_revocation,
]

NOTIFICATION_PREDICATES = {
    ("channel.chat.message", "1"): messages.is_channel_chat_message,
    ("channel.follow", "2"): messages.is_channel_follow,
    ("channel.update", "2"): messages.is_channel_update,
    ("channel.subscribe", "1"): messages.is_channel_subscribe,
    ("channel.cheer", "1"): messages.is_channel_cheer,
    ("channel.raid", "1"): messages.is_channel_raid,
    ("channel.ban", "1"): messages.is_channel_ban,
    ("stream.online", "1"): messages.is_stream_online,
    ("stream.offline", "1"): messages.is_stream_offline,
}


def _lifecycle_frames(frames):
    return {
        MessageType.SESSION_WELCOME: frames.parsed(frames.welcome()),
        MessageType.SESSION_KEEPALIVE: frames.parsed(frames.keepalive()),
        MessageType.NOTIFICATION: frames.parsed(frames.notification()),
        MessageType.SESSION_RECONNECT: frames.parsed(frames.reconnect("wss://x")),
        MessageType.REVOCATION: frames.parsed(frames.revocation()),
    }


class TestLifecyclePredicates:
    """Test lifecycle category predicates."""

    def test_exactly_one_predicate_matches(self, frames):
        """Every well-formed frame should satisfy exactly one lifecycle predicate."""
        for expected, frame in _lifecycle_frames(frames).items():
            matches = [predicate for predicate in LIFECYCLE_PREDICATES if predicate(frame)]

            assert len(matches) == 1
            assert classify(frame) == expected

    def test_unknown_message_type(self, frames):
        """Unknown message types should match no predicate."""
        raw = frames.keepalive()
        raw["metadata"]["message_type"] = "something_else"
        frame = frames.parsed(raw)

        assert classify(frame) is None
        assert not any(predicate(frame) for predicate in LIFECYCLE_PREDICATES)


class TestNotificationPredicates:
    """Test subscription type and version predicates."""

    @pytest.mark.parametrize(("key", "predicate"), list(NOTIFICATION_PREDICATES.items()))
    def test_matches_only_its_type_and_version(self, frames, key, predicate):
        """Each predicate should accept only its own type and version."""
        frame = frames.parsed(frames.notification(*key))

        assert predicate(frame)
        others = [p for k, p in NOTIFICATION_PREDICATES.items() if k != key and p(frame)]
        assert others == []

    def test_version_mismatch_matches_nothing(self, frames):
        """A known type with an unknown version should be treated as unknown."""
        frame = frames.parsed(frames.notification("channel.follow", "1"))

        assert messages.is_notification(frame)
        assert not any(p(frame) for p in NOTIFICATION_PREDICATES.values())

    def test_unknown_type_matches_nothing(self, frames):
        """An unlisted subscription type should match no specific predicate."""
        frame = frames.parsed(frames.notification("channel.hype_train.begin", "1"))

        assert notification_key(frame) == ("channel.hype_train.begin", "1")
        assert not any(p(frame) for p in NOTIFICATION_PREDICATES.values())

    def test_non_notifications_never_match(self, frames):
        """Revocations carry a subscription type but are not notifications."""
        frame = frames.parsed(frames.revocation("channel.follow", "2"))

        assert notification_key(frame) is None
        assert not messages.is_channel_follow(frame)
