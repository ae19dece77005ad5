"""Single HTTP exchanges with query/fragment parameters and a timeout guard."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from aiohttp import ClientSession

from ._parsing import decode_json_object
from .constants import DEFAULT_TIMEOUT
from .exceptions import RequestAbortedError, RequestTimeoutError

logger = logging.getLogger(__name__)

type ParamValue = str | int | float | bool | None | Iterable[str | int | float | bool | None]
type Params = Mapping[str, ParamValue]


def _format_value(value: str | int | float | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def serialize_params(params: Params) -> str:
    """Serialize parameters into ``key=value`` pairs joined by ``&``.

    Pairs keep insertion order. Falsy values (``None``, ``""``, ``0``,
    ``False``) are skipped entirely, and so are falsy items inside lists.
    List and tuple values expand into repeated keys.

    Args:
        params: Parameter mapping.

    Returns:
        Encoded string without a leading ``?`` or ``#``.
    """
    pairs: list[str] = []
    for key, value in params.items():
        if not value:
            continue
        values = value if isinstance(value, list | tuple) else (value,)
        pairs.extend(
            f"{quote(key, safe='')}={quote(_format_value(item), safe='')}"
            for item in values
            if item
        )
    return "&".join(pairs)


def build_url(
    url: str,
    *,
    search: Params | None = None,
    fragment: Params | None = None,
) -> str:
    """Append query and fragment parameters to a URL.

    Args:
        url: Base URL.
        search: Query parameters.
        fragment: Fragment parameters.

    Returns:
        URL with the serialized parameters appended.
    """
    if search:
        query = serialize_params(search)
        if query:
            url += ("&" if "?" in url else "?") + query
    if fragment:
        encoded = serialize_params(fragment)
        if encoded:
            url += "#" + encoded
    return url


@dataclass(slots=True, frozen=True)
class RawResponse:
    """Status, headers and body of a completed exchange."""

    status: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> dict[str, Any]:
        """Decode the body as a JSON object.

        Raises:
            ValueError: If the body is not a JSON object.
        """
        return decode_json_object(self.text)


class RequestExecutor:
    """Issues HTTP requests through a shared aiohttp session.

    Unless the caller supplies an ``abort`` event, every request is cancelled
    once its timeout elapses and fails with :class:`RequestTimeoutError`.
    """

    def __init__(
        self,
        session: ClientSession,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the executor.

        Args:
            session: Open aiohttp session used for every request.
            timeout: Default timeout in seconds; ``0`` disables the guard.
        """
        self.session = session
        self.timeout = timeout

    async def request(
        self,
        method: str,
        url: str,
        *,
        search: Params | None = None,
        fragment: Params | None = None,
        timeout: float | None = None,
        abort: asyncio.Event | None = None,
        **kwargs: Any,
    ) -> RawResponse:
        """Perform one request and read its body.

        Args:
            method: HTTP method.
            url: Target URL.
            search: Extra query parameters.
            fragment: Extra fragment parameters.
            timeout: Override of the default timeout; ``0`` or ``False`` waits
                indefinitely.
            abort: Caller-owned cancellation handle. When given, no timeout
                guard is installed and setting the event cancels the request.
            **kwargs: Passed through to :meth:`aiohttp.ClientSession.request`.

        Returns:
            Completed response.

        Raises:
            RequestTimeoutError: If the timeout guard fired.
            RequestAbortedError: If ``abort`` was set before completion.
        """
        target = build_url(url, search=search, fragment=fragment)
        effective = self.timeout if timeout is None else timeout

        if abort is not None:
            return await self._send_abortable(method, target, abort, **kwargs)

        if not effective or effective <= 0:
            return await self._send(method, target, **kwargs)

        guard = asyncio.timeout(effective)
        try:
            async with guard:
                return await self._send(method, target, **kwargs)
        except TimeoutError as exc:
            if not guard.expired():
                raise
            logger.debug("Request timed out after %ss", effective)
            msg = f"Request timed out after {effective:g} seconds"
            raise RequestTimeoutError(msg) from exc

    async def _send(self, method: str, url: str, **kwargs: Any) -> RawResponse:
        async with self.session.request(method, url, **kwargs) as response:
            text = await response.text()
            return RawResponse(
                status=response.status,
                text=text,
                headers=dict(response.headers),
            )

    async def _send_abortable(
        self, method: str, url: str, abort: asyncio.Event, **kwargs: Any
    ) -> RawResponse:
        request = asyncio.ensure_future(self._send(method, url, **kwargs))
        aborted = asyncio.ensure_future(abort.wait())
        try:
            await asyncio.wait(
                {request, aborted}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if not request.done():
                request.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await request
            aborted.cancel()

        if request.cancelled():
            msg = "Request aborted by caller"
            raise RequestAbortedError(msg)
        return request.result()
