"""HTTP client for the Twitch Helix and OAuth APIs."""

import asyncio
import logging
from collections.abc import Sequence
from http import HTTPStatus
from types import TracebackType
from typing import Any, Self, TypeVar

from aiohttp import ClientSession, ClientTimeout
from aiohttp.client_exceptions import ClientError
from aiolimiter import AsyncLimiter
from pydantic import BaseModel

from ._parsing import parse_many, parse_one
from ._utils import mask_secret, mask_secret_in_url, trim_for_log
from .config import ClientConfig
from .constants import (
    AUTH_ERROR_STATUSES,
    BLOCKED_TERM_MAX_LENGTH,
    BLOCKED_TERM_MIN_LENGTH,
    HELIX_BASE_URL,
    OAUTH_REVOKE_URL,
    OAUTH_VALIDATE_URL,
    RATE_LIMIT_MAX_RATE,
    RATE_LIMIT_TIME_PERIOD,
    RETRY_STATUS_CODES,
)
from .exceptions import AuthError, TwitchError
from .fetch import Params, RawResponse, RequestExecutor, build_url
from .resources import (
    ApiResponse,
    Authorization,
    BlockedTerm,
    Category,
    ChannelInformationUpdate,
    ChatMessageResult,
    EventSubSubscription,
    User,
)
from .subscriptions import Subscription

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

_FAILURES = (TwitchError, ClientError, TimeoutError, OSError, ValueError)
"""Errors that endpoints normalize into a failed ApiResponse."""


class HelixClient:
    """Client for the Helix REST endpoints used alongside EventSub.

    Every endpoint returns an :class:`ApiResponse` and never raises: transport
    errors, timeouts, and non-2xx statuses become ``ok == False`` responses.

    Share a rate limiter across clients to pool rate limits:
        >>> limiter = AsyncLimiter(max_rate=800, time_period=60)
        >>> async with (
        ...     HelixClient("client1", "token1", rate_limiter=limiter) as c1,
        ...     HelixClient("client1", "token2", rate_limiter=limiter) as c2,
        ... ):
        ...     pass
    """

    def __init__(
        self,
        client_id: str,
        token: str,
        *,
        config: ClientConfig | None = None,
        rate_limiter: AsyncLimiter | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client_id: Twitch application client id.
            token: User or app access token.
            config: Client settings (defaults to ClientConfig()).
            rate_limiter: Rate limiter to share across clients
                (defaults to 800 req/60s).

        Raises:
            AuthError: If client_id or token is empty or has whitespace.
        """
        if not client_id or client_id != client_id.strip():
            msg = "Client id cannot be empty or contain leading/trailing whitespace"
            raise AuthError(msg)
        if not token or token != token.strip():
            msg = "Token cannot be empty or contain leading/trailing whitespace"
            raise AuthError(msg)

        self.client_id = client_id
        self.token = token

        self.config = config or ClientConfig()
        self.session: ClientSession | None = None
        self._executor: RequestExecutor | None = None
        self._rate_limiter = rate_limiter or AsyncLimiter(
            max_rate=RATE_LIMIT_MAX_RATE,
            time_period=RATE_LIMIT_TIME_PERIOD,
        )

    @classmethod
    def from_authorization(
        cls,
        authorization: Authorization,
        *,
        config: ClientConfig | None = None,
        rate_limiter: AsyncLimiter | None = None,
    ) -> Self:
        """Create a client from a validated token."""
        return cls(
            authorization.client_id,
            authorization.token,
            config=config,
            rate_limiter=rate_limiter,
        )

    def __repr__(self) -> str:
        """Return string representation with masked token."""
        return (
            f"HelixClient(client_id='{self.client_id}', "
            f"token='{mask_secret(self.token)}')"
        )

    async def __aenter__(self) -> Self:
        """Initialize HTTP session.

        Returns:
            Client instance with active session.

        Raises:
            TwitchError: If session initialization fails.
        """
        try:
            if self.session is None:
                # The executor enforces timeouts per request.
                self.session = ClientSession(timeout=ClientTimeout(total=None))
                self._executor = RequestExecutor(
                    self.session, timeout=self.config.timeout
                )
        except (ClientError, OSError, TimeoutError) as e:
            await self.close()
            msg = "Failed to initialize HTTP session"
            raise TwitchError(msg) from e
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Clean up session and resources."""
        await self.close()

    def _headers(self, *, json_body: bool = False) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Client-Id": self.client_id,
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _make_request(
        self,
        method: str,
        url: str,
        *,
        search: Params | None = None,
        **kwargs: Any,
    ) -> RawResponse:
        """Send a request with rate limiting and retries.

        Args:
            method: HTTP method.
            url: Request URL.
            search: Query parameters.
            **kwargs: Passed through to the executor.

        Returns:
            Final response.

        Raises:
            TwitchError: If the client is not open or the request fails after retries.
        """
        if self._executor is None:
            msg = "Client not initialized - use async context manager"
            raise TwitchError(msg)

        max_attempts = max(1, self.config.retry_attempts)
        delay = self.config.retry_backoff
        attempt = 0

        while True:
            attempt += 1
            try:
                async with self._rate_limiter:
                    response = await self._executor.request(
                        method, url, search=search, **kwargs
                    )
            except (ClientError, TimeoutError, OSError, TwitchError) as exc:
                if attempt >= max_attempts:
                    logger.warning(
                        "%s %s failed after %d attempts: %s",
                        method,
                        mask_secret_in_url(build_url(url, search=search), self.token),
                        attempt,
                        exc,
                    )
                    if isinstance(exc, TwitchError):
                        raise
                    msg = f"{method} request failed: {exc}"
                    raise TwitchError(msg) from exc

                logger.warning(
                    "Attempt %d/%d failed: %s", attempt, max_attempts, exc
                )
                await asyncio.sleep(delay)
                delay = min(
                    delay * self.config.retry_factor,
                    self.config.retry_max_delay,
                )
                continue

            if response.status in RETRY_STATUS_CODES and attempt < max_attempts:
                logger.debug(
                    "Retrying due to status %s (attempt %d/%d)",
                    response.status,
                    attempt,
                    max_attempts,
                )
                await asyncio.sleep(delay)
                delay = min(
                    delay * self.config.retry_factor,
                    self.config.retry_max_delay,
                )
                continue

            return response

    def _error_response(self, response: RawResponse) -> ApiResponse[Any]:
        """Build a failed response from a non-2xx reply."""
        if response.status in AUTH_ERROR_STATUSES:
            logger.warning("Authentication failed for client %s", self.client_id)
        else:
            logger.error(
                "HTTP error %d: %s", response.status, trim_for_log(response.text)
            )
        try:
            message = str(response.json().get("message") or "")
        except ValueError:
            message = ""
        if not message:
            try:
                message = HTTPStatus(response.status).phrase
            except ValueError:
                message = f"HTTP {response.status}"
        return ApiResponse.failure(response.status, message)

    async def _fetch_one(
        self,
        method: str,
        url: str,
        model: type[_ModelT],
        *,
        expected: HTTPStatus = HTTPStatus.OK,
        **kwargs: Any,
    ) -> ApiResponse[_ModelT]:
        """Call an endpoint whose ``data`` holds exactly one resource."""
        try:
            response = await self._make_request(method, url, **kwargs)
            if response.status != expected:
                return self._error_response(response)
            payload = response.json()
            return ApiResponse(
                status=response.status,
                data=parse_one(payload, model),
                total=payload.get("total"),
            )
        except _FAILURES as exc:
            return self._local_failure(method, url, exc)

    async def _fetch_many(
        self,
        method: str,
        url: str,
        model: type[_ModelT],
        **kwargs: Any,
    ) -> ApiResponse[list[_ModelT]]:
        """Call an endpoint whose ``data`` holds a list of resources."""
        try:
            response = await self._make_request(method, url, **kwargs)
            if response.status != HTTPStatus.OK:
                return self._error_response(response)
            payload = response.json()
            pagination = payload.get("pagination") or {}
            return ApiResponse(
                status=response.status,
                data=parse_many(
                    payload, model, strict_validation=self.config.strict_validation
                ),
                total=payload.get("total"),
                cursor=pagination.get("cursor"),
            )
        except _FAILURES as exc:
            return self._local_failure(method, url, exc)

    async def _fetch_none(
        self,
        method: str,
        url: str,
        *,
        expected: HTTPStatus = HTTPStatus.NO_CONTENT,
        **kwargs: Any,
    ) -> ApiResponse[None]:
        """Call an endpoint that answers with an empty body on success."""
        try:
            response = await self._make_request(method, url, **kwargs)
            if response.status != expected:
                return self._error_response(response)
            return ApiResponse(status=response.status)
        except _FAILURES as exc:
            return self._local_failure(method, url, exc)

    def _local_failure(self, method: str, url: str, exc: Exception) -> ApiResponse[Any]:
        logger.warning(
            "%s %s failed: %s", method, mask_secret_in_url(url, self.token), exc
        )
        status = exc.status_code if isinstance(exc, TwitchError) else None
        return ApiResponse.failure(status or HTTPStatus.BAD_REQUEST, str(exc))

    async def validate_token(self) -> ApiResponse[Authorization]:
        """Validate the access token and describe its owner.

        Returns:
            Authorization carrying the token, client id, user and scopes.
        """
        try:
            response = await self._make_request(
                "GET",
                OAUTH_VALIDATE_URL,
                headers={"Authorization": f"OAuth {self.token}"},
            )
            if response.status != HTTPStatus.OK:
                return self._error_response(response)
            payload = response.json()
            return ApiResponse(
                status=response.status,
                data=Authorization.model_validate({**payload, "token": self.token}),
            )
        except _FAILURES as exc:
            return self._local_failure("GET", OAUTH_VALIDATE_URL, exc)

    async def revoke_token(self) -> ApiResponse[None]:
        """Revoke the access token."""
        return await self._fetch_none(
            "POST",
            OAUTH_REVOKE_URL,
            expected=HTTPStatus.OK,
            search={"client_id": self.client_id, "token": self.token},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

    async def get_users(
        self,
        *,
        ids: Sequence[str] = (),
        logins: Sequence[str] = (),
    ) -> ApiResponse[list[User]]:
        """Look up users by id or login; with neither, returns the token owner."""
        return await self._fetch_many(
            "GET",
            f"{HELIX_BASE_URL}/users",
            User,
            search={"id": list(ids), "login": list(logins)},
            headers=self._headers(),
        )

    async def create_eventsub_subscription(
        self, subscription: Subscription
    ) -> ApiResponse[EventSubSubscription]:
        """Register a subscription.

        With a socket transport, call this only from the welcome callback of a
        session that was not reconnected: a reconnected session keeps the
        subscriptions of its predecessor.
        """
        return await self._fetch_one(
            "POST",
            f"{HELIX_BASE_URL}/eventsub/subscriptions",
            EventSubSubscription,
            expected=HTTPStatus.ACCEPTED,
            data=subscription.model_dump_json(),
            headers=self._headers(json_body=True),
        )

    async def delete_eventsub_subscription(self, subscription_id: str) -> ApiResponse[None]:
        """Delete a subscription."""
        return await self._fetch_none(
            "DELETE",
            f"{HELIX_BASE_URL}/eventsub/subscriptions",
            search={"id": subscription_id},
            headers=self._headers(),
        )

    async def send_chat_message(
        self,
        broadcaster_id: str,
        sender_id: str,
        message: str,
        *,
        reply_parent_message_id: str | None = None,
    ) -> ApiResponse[ChatMessageResult]:
        """Send a chat message, optionally as a reply."""
        return await self._fetch_one(
            "POST",
            f"{HELIX_BASE_URL}/chat/messages",
            ChatMessageResult,
            search={
                "broadcaster_id": broadcaster_id,
                "sender_id": sender_id,
                "message": message,
                "reply_parent_message_id": reply_parent_message_id,
            },
            headers=self._headers(json_body=True),
        )

    async def get_blocked_terms(
        self,
        broadcaster_id: str,
        moderator_id: str,
        *,
        first: int | None = None,
        after: str | None = None,
    ) -> ApiResponse[list[BlockedTerm]]:
        """List a broadcaster's blocked terms, one page at a time."""
        return await self._fetch_many(
            "GET",
            f"{HELIX_BASE_URL}/moderation/blocked_terms",
            BlockedTerm,
            search={
                "broadcaster_id": broadcaster_id,
                "moderator_id": moderator_id,
                "first": first,
                "after": after,
            },
            headers=self._headers(),
        )

    async def add_blocked_term(
        self, broadcaster_id: str, moderator_id: str, text: str
    ) -> ApiResponse[BlockedTerm]:
        """Block a word or phrase in a broadcaster's chat."""
        if len(text) < BLOCKED_TERM_MIN_LENGTH:
            return ApiResponse.failure(
                HTTPStatus.BAD_REQUEST,
                f"The term must contain a minimum of {BLOCKED_TERM_MIN_LENGTH} characters",
            )
        if len(text) > BLOCKED_TERM_MAX_LENGTH:
            return ApiResponse.failure(
                HTTPStatus.BAD_REQUEST,
                f"The term may contain up to a maximum of {BLOCKED_TERM_MAX_LENGTH} characters",
            )
        return await self._fetch_one(
            "POST",
            f"{HELIX_BASE_URL}/moderation/blocked_terms",
            BlockedTerm,
            search={"broadcaster_id": broadcaster_id, "moderator_id": moderator_id},
            json={"text": text},
            headers=self._headers(json_body=True),
        )

    async def remove_blocked_term(
        self, broadcaster_id: str, moderator_id: str, term_id: str
    ) -> ApiResponse[None]:
        """Remove a blocked term."""
        return await self._fetch_none(
            "DELETE",
            f"{HELIX_BASE_URL}/moderation/blocked_terms",
            search={
                "broadcaster_id": broadcaster_id,
                "moderator_id": moderator_id,
                "id": term_id,
            },
            headers=self._headers(),
        )

    async def modify_channel_information(
        self, broadcaster_id: str, update: ChannelInformationUpdate
    ) -> ApiResponse[None]:
        """Change title, category, tags or other channel properties."""
        return await self._fetch_none(
            "PATCH",
            f"{HELIX_BASE_URL}/channels",
            search={"broadcaster_id": broadcaster_id},
            data=update.model_dump_json(exclude_none=True),
            headers=self._headers(json_body=True),
        )

    async def search_categories(
        self,
        query: str,
        *,
        first: int | None = None,
        after: str | None = None,
    ) -> ApiResponse[list[Category]]:
        """Search games and categories by name."""
        return await self._fetch_many(
            "GET",
            f"{HELIX_BASE_URL}/search/categories",
            Category,
            search={"query": query, "first": first, "after": after},
            headers=self._headers(),
        )

    async def close(self) -> None:
        """Close session (idempotent)."""
        try:
            if self.session:
                await self.session.close()
                self.session = None
        except (ClientError, OSError, RuntimeError) as e:
            logger.warning("Error closing session: %s", e, exc_info=True)
        self._executor = None
