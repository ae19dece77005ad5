"""Data models for EventSub socket frames."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum
from functools import cached_property
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from ._utils import format_validation_error_locations

logger = logging.getLogger(__name__)


class BaseTwitchModel(BaseModel):
    """Base for all Twitch models.

    Immutable and tolerant of fields added upstream after release.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


_ModelT = TypeVar("_ModelT", bound=BaseModel)


class MessageType(StrEnum):
    """Lifecycle categories of frames sent by the EventSub socket server."""

    SESSION_WELCOME = "session_welcome"
    SESSION_KEEPALIVE = "session_keepalive"
    NOTIFICATION = "notification"
    SESSION_RECONNECT = "session_reconnect"
    REVOCATION = "revocation"


class Metadata(BaseTwitchModel):
    """Envelope identifying a frame.

    The server delivers at least once, so a redelivered frame keeps its
    ``message_id``.
    """

    message_id: str
    message_type: str
    message_timestamp: datetime | None = None
    subscription_type: str | None = None
    subscription_version: str | None = None


class SessionInfo(BaseTwitchModel):
    """Server-side description of a socket session."""

    id: str
    status: str
    keepalive_timeout_seconds: int | None = None
    reconnect_url: str | None = None
    connected_at: datetime | None = None


class SubscriptionInfo(BaseTwitchModel):
    """Subscription that a notification or revocation refers to."""

    id: str
    status: str
    type: str
    version: str
    cost: int = 0
    condition: dict[str, Any] = Field(default_factory=dict)
    transport: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class Frame(BaseTwitchModel):
    """Decoded frame received over an EventSub socket.

    Accessors like session, subscription and event return None if the data is
    missing or invalid for this frame.
    """

    metadata: Metadata
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def message_id(self) -> str:
        """Identifier shared by redelivered copies of this frame."""
        return self.metadata.message_id

    @property
    def message_type(self) -> str:
        """Raw lifecycle category."""
        return self.metadata.message_type

    @cached_property
    def session(self) -> SessionInfo | None:
        """Session object (welcome and reconnect frames)."""
        return self._extract_model("session", SessionInfo)

    @cached_property
    def subscription(self) -> SubscriptionInfo | None:
        """Subscription object (notification and revocation frames)."""
        return self._extract_model("subscription", SubscriptionInfo)

    @property
    def event(self) -> dict[str, Any] | None:
        """Raw event body of a notification."""
        value = self.payload.get("event")
        return value if isinstance(value, dict) else None

    def event_as(self, model: type[_ModelT]) -> _ModelT | None:
        """Validate the notification event body against ``model``.

        Args:
            model: Pydantic model describing the event body.

        Returns:
            Validated model or None if the body is missing or invalid.
        """
        if self.event is None:
            return None
        try:
            return model.model_validate(self.event)
        except ValidationError as exc:
            logger.warning(
                "message_id=%s locations=%s",
                self.message_id,
                format_validation_error_locations(exc),
            )
            return None

    def _extract_model(self, key: str, model: type[_ModelT]) -> _ModelT | None:
        payload = self.payload.get(key)
        if payload is None:
            return None
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "message_id=%s locations=%s",
                self.message_id,
                format_validation_error_locations(exc),
            )
            return None


class Badge(BaseTwitchModel):
    """Chat badge shown next to a user name."""

    set_id: str
    id: str
    info: str = ""


class Cheer(BaseTwitchModel):
    """Bits attached to a chat message."""

    bits: int


class Cheermote(BaseTwitchModel):
    """Cheermote fragment metadata."""

    prefix: str
    bits: int
    tier: int


class Emote(BaseTwitchModel):
    """Emote fragment metadata."""

    id: str
    emote_set_id: str
    owner_id: str | None = None
    format: list[str] = Field(default_factory=list)


class Mention(BaseTwitchModel):
    """Mention fragment metadata."""

    user_id: str
    user_name: str
    user_login: str


class MessageFragment(BaseTwitchModel):
    """Piece of a chat message (text, cheermote, emote or mention)."""

    type: str
    text: str
    cheermote: Cheermote | None = None
    emote: Emote | None = None
    mention: Mention | None = None


class ChatMessage(BaseTwitchModel):
    """Chat message text with its parsed fragments."""

    text: str
    fragments: list[MessageFragment] = Field(default_factory=list)


class Reply(BaseTwitchModel):
    """Thread information for a reply."""

    parent_message_id: str
    parent_message_body: str
    parent_user_id: str
    parent_user_name: str
    parent_user_login: str
    thread_message_id: str
    thread_user_id: str
    thread_user_name: str
    thread_user_login: str


class ChatMessageEvent(BaseTwitchModel):
    """Event body of a ``channel.chat.message`` (version 1) notification."""

    broadcaster_user_id: str
    broadcaster_user_name: str
    broadcaster_user_login: str
    chatter_user_id: str
    chatter_user_name: str
    chatter_user_login: str
    message_id: str
    message: ChatMessage
    message_type: str = "text"
    badges: list[Badge] = Field(default_factory=list)
    cheer: Cheer | None = None
    color: str = ""
    reply: Reply | None = None
    channel_points_custom_reward_id: str | None = None
    source_broadcaster_user_id: str | None = None
    source_broadcaster_user_name: str | None = None
    source_broadcaster_user_login: str | None = None
    source_message_id: str | None = None
    source_badges: list[Badge] | None = None

    @property
    def is_shared_chat(self) -> bool:
        """True if the message was sent from another channel's chat."""
        return self.source_broadcaster_user_id is not None
