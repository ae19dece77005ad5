"""Configuration for the Twitch EventSub client."""

from typing import ClassVar, Self

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict

from .constants import (
    DEFAULT_RECONNECT_DELAY_MS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RETRY_FACTOR,
    DEFAULT_RETRY_MAX_DELAY,
    DEFAULT_TIMEOUT,
    EVENTSUB_WEBSOCKET_URL,
    KEEPALIVE_GRACE,
    WELCOME_TIMEOUT,
)


class ClientConfig(BaseModel):
    """Immutable configuration for Helix REST requests."""

    model_config: ClassVar[ConfigDict] = {"frozen": True}

    timeout: float = Field(default=DEFAULT_TIMEOUT, ge=0)
    """Request timeout in seconds; ``0`` waits indefinitely."""

    strict_validation: bool = True
    """Raise on invalid list items vs. skip and log."""

    retry_attempts: int = Field(default=DEFAULT_RETRY_ATTEMPTS, ge=1)
    """Total attempts including the initial request (must be >= 1)."""

    retry_backoff: float = Field(default=DEFAULT_RETRY_BACKOFF, ge=0)
    """Initial retry delay in seconds."""

    retry_factor: float = Field(default=DEFAULT_RETRY_FACTOR, gt=0)
    """Backoff multiplier applied after each retry."""

    retry_max_delay: float = Field(default=DEFAULT_RETRY_MAX_DELAY, ge=0)
    """Maximum delay between retries in seconds."""

    @model_validator(mode="after")
    def _check_delays(self) -> Self:
        """Validate retry delay configuration.

        Returns:
            Self: Validated configuration instance.

        Raises:
            ValueError: If ``retry_max_delay`` is less than ``retry_backoff``.
        """
        if self.retry_max_delay < self.retry_backoff:
            msg: str = (
                f"retry_max_delay ({self.retry_max_delay}) must be >= "
                f"retry_backoff ({self.retry_backoff}). "
                f"Consider setting retry_max_delay to at least "
                f"{self.retry_backoff} or reducing retry_backoff."
            )
            raise ValueError(msg)
        return self


class SessionConfig(BaseModel):
    """Immutable configuration for an EventSub socket session."""

    model_config: ClassVar[ConfigDict] = {"frozen": True}

    url: str = EVENTSUB_WEBSOCKET_URL
    """Socket URL used for the first connection and after every close."""

    reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS
    """Delay before reopening a closed connection; values below 1 disable it."""

    welcome_timeout: float = Field(default=WELCOME_TIMEOUT, gt=0)
    """Seconds a new connection may stay silent before its welcome arrives."""

    keepalive_grace: float = Field(default=KEEPALIVE_GRACE, ge=0)
    """Seconds added to the server keepalive interval before giving up."""

    strict_validation: bool = False
    """Force-close on malformed frames vs. log and drop them."""

    @property
    def reconnect_enabled(self) -> bool:
        """True if closed connections are reopened automatically."""
        return self.reconnect_delay_ms >= 1
