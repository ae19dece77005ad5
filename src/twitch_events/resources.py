"""Data models for Helix REST resources."""

from __future__ import annotations

from datetime import datetime
from http import HTTPStatus
from typing import Any, Generic, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import BaseTwitchModel


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform result of a REST call.

    ``data`` holds a single resource or a list of resources; which one is fixed
    by the endpoint, not by the response.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: int
    data: T | None = None
    message: str | None = None
    total: int | None = None
    cursor: str | None = None

    @property
    def ok(self) -> bool:
        """True for 2xx responses that carried no error message."""
        return (
            HTTPStatus.OK <= self.status < HTTPStatus.MULTIPLE_CHOICES
            and self.message is None
        )

    @classmethod
    def failure(cls, status: int, message: str) -> Self:
        """Build a failed response.

        Args:
            status: HTTP status, or 400 for local and transport failures.
            message: Human readable reason.

        Returns:
            Response with ``ok`` set to False.
        """
        return cls(status=status, message=message)


class Authorization(BaseTwitchModel):
    """Result of validating an access token, together with the token itself."""

    token: str = Field(default="", repr=False)
    client_id: str
    login: str | None = None
    user_id: str | None = None
    scopes: list[str] = Field(default_factory=list)
    expires_in: int = 0

    @property
    def is_user_token(self) -> bool:
        """True if the token belongs to a user rather than an app."""
        return self.user_id is not None


class User(BaseTwitchModel):
    """Twitch user account."""

    id: str
    login: str
    display_name: str
    type: str = ""
    broadcaster_type: str = ""
    description: str = ""
    profile_image_url: str = ""
    offline_image_url: str = ""
    view_count: int = 0
    email: str | None = None
    created_at: datetime | None = None


class BlockedTerm(BaseTwitchModel):
    """Word or phrase blocked in a broadcaster's chat."""

    broadcaster_id: str
    moderator_id: str
    id: str
    text: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    expires_at: datetime | None = None


class EventSubSubscription(BaseTwitchModel):
    """Registered EventSub subscription."""

    id: str
    status: str
    type: str
    version: str
    condition: dict[str, Any] = Field(default_factory=dict)
    transport: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    cost: int = 0


class DropReason(BaseTwitchModel):
    """Reason a chat message was not sent."""

    code: str
    message: str


class ChatMessageResult(BaseTwitchModel):
    """Outcome of sending a chat message."""

    message_id: str
    is_sent: bool
    drop_reason: DropReason | None = None


class Category(BaseTwitchModel):
    """Game or category returned by search."""

    id: str
    name: str
    box_art_url: str = ""


class ContentClassificationLabel(BaseTwitchModel):
    """Content classification label toggle."""

    id: str
    is_enabled: bool


class ChannelInformationUpdate(BaseTwitchModel):
    """Fields to change on a channel; at least one must be set."""

    game_id: str | None = None
    broadcaster_language: str | None = None
    title: str | None = None
    delay: int | None = None
    tags: list[str] | None = None
    content_classification_labels: list[ContentClassificationLabel] | None = None
    is_branded_content: bool | None = None

    @model_validator(mode="after")
    def _check_not_empty(self) -> Self:
        """Reject updates that change nothing.

        Returns:
            Self: Validated update.

        Raises:
            ValueError: If no field is set.
        """
        if not self.model_dump(exclude_none=True):
            msg = "You must specify at least one field in request body"
            raise ValueError(msg)
        return self
