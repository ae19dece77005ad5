"""EventSub socket session with keepalive watchdog and transparent reconnects.

One :class:`EventSubSession` is one logical session. It may span several
physical connections:

* a server ``session_reconnect`` frame opens a connection to the given URL
  while the old one stays open but ignored, until the new connection's welcome
  arrives and the old one is closed;
* any close (server close, network failure, missed welcome or keepalive)
  reports through ``on_close`` and, unless disabled, opens a fresh connection to
  the configured URL after a constant delay.

Example:
    .. code-block:: python

        async def on_welcome(frame, is_reconnected):
            if not is_reconnected:
                await client.create_eventsub_subscription(
                    channel_chat_message(session, broadcaster_id, user_id)
                )

        session = EventSubSession(
            callbacks=SessionCallbacks(
                on_welcome=on_welcome, on_notification=router.dispatch
            )
        )
        async with session:
            await session.wait_closed()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import TracebackType
from typing import Any, Protocol, Self

from aiohttp import ClientSession, ClientWebSocketResponse, WSMsgType
from aiohttp.client_exceptions import ClientError

from ._parsing import decode_frame
from .config import SessionConfig
from .constants import (
    CLOSE_ABNORMAL,
    CLOSE_KEEPALIVE_TIMEOUT_REASON,
    CLOSE_NETWORK_TIMEOUT,
    CLOSE_NORMAL,
    CLOSE_NORMAL_REASON,
    CLOSE_PROTOCOL_ERROR,
    CLOSE_PROTOCOL_ERROR_REASON,
    CLOSE_WELCOME_TIMEOUT_REASON,
)
from .exceptions import FrameError, TwitchError
from .messages import (
    is_notification,
    is_revocation,
    is_session_keepalive,
    is_session_reconnect,
    is_session_welcome,
)
from .models import Frame, SessionInfo
from .resources import Authorization
from .subscriptions import WebSocketTransport, websocket_transport

logger = logging.getLogger(__name__)

_CLOSE_REASON_MAX_BYTES = 123
_TEXT_TYPES = (WSMsgType.TEXT, WSMsgType.BINARY)
_CLOSE_TYPES = (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED, WSMsgType.ERROR)

type FrameCallback = Callable[[Frame], Awaitable[None]]
type WelcomeCallback = Callable[[Frame, bool], Awaitable[None]]
type CloseCallback = Callable[[int, str], Awaitable[None]]


class SocketMessage(Protocol):
    """Message returned by :meth:`SocketConnection.receive`."""

    type: WSMsgType
    data: Any
    extra: Any


class SocketConnection(Protocol):
    """Physical socket as used by the session (aiohttp's client websocket)."""

    async def receive(self) -> SocketMessage:
        """Wait for the next message."""
        ...

    async def close(self, *, code: int = ..., message: bytes = ...) -> bool:
        """Close the socket."""
        ...


type Connector = Callable[[str], Awaitable[SocketConnection]]


class WebSocketConnector:
    """Opens aiohttp client websockets.

    Creates its own ClientSession on first use unless one is supplied; only an
    owned ClientSession is closed by :meth:`close`.
    """

    def __init__(
        self,
        session: ClientSession | None = None,
        *,
        heartbeat: float | None = None,
    ) -> None:
        """Initialize the connector.

        Args:
            session: Shared aiohttp session.
            heartbeat: Optional websocket ping interval in seconds.
        """
        self._session = session
        self._owns_session = session is None
        self._heartbeat = heartbeat

    async def __call__(self, url: str) -> ClientWebSocketResponse:
        """Open a websocket to ``url``."""
        if self._session is None or self._session.closed:
            self._session = ClientSession()
            self._owns_session = True
        return await self._session.ws_connect(url, heartbeat=self._heartbeat)

    async def close(self) -> None:
        """Close the owned ClientSession (idempotent)."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


@dataclass(slots=True)
class SessionCallbacks:
    """Hooks invoked by the session; unset hooks are skipped.

    ``on_message`` runs for every frame and is awaited before the specific hook.
    ``on_welcome`` receives ``is_reconnected``: when True the session continues
    a previous one after a server-requested reconnect and already carries its
    subscriptions, so do not subscribe again.
    """

    on_message: FrameCallback | None = None
    on_welcome: WelcomeCallback | None = None
    on_keepalive: FrameCallback | None = None
    on_notification: FrameCallback | None = None
    on_reconnect: FrameCallback | None = None
    on_revocation: FrameCallback | None = None
    on_close: CloseCallback | None = None


class SessionState(StrEnum):
    """Public lifecycle state of a session."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


@dataclass(eq=False, slots=True)
class _Link:
    """One physical connection attempt."""

    url: str
    socket: SocketConnection | None = None
    live: bool = True
    closing: bool = False
    welcome_guard: asyncio.TimerHandle | None = None
    pending_open: asyncio.TimerHandle | None = None

    def cancel_timers(self) -> None:
        for handle in (self.welcome_guard, self.pending_open):
            if handle is not None:
                handle.cancel()
        self.welcome_guard = None
        self.pending_open = None


@dataclass(frozen=True, slots=True)
class _Connecting:
    link: _Link


@dataclass(frozen=True, slots=True)
class _Active:
    link: _Link
    session: SessionInfo


@dataclass(frozen=True, slots=True)
class _Reconnecting:
    old: _Link
    new: _Link
    session: SessionInfo
    keepalive_timeout_seconds: int | None


@dataclass(frozen=True, slots=True)
class _Closed:
    code: int | None = None
    reason: str = ""


type _State = _Connecting | _Active | _Reconnecting | _Closed


@dataclass(frozen=True, slots=True)
class _Delivery:
    """Frame waiting for its callbacks."""

    frame: Frame
    is_reconnected: bool = False


@dataclass(frozen=True, slots=True)
class _CloseNotice:
    """Closed connection waiting for ``on_close``; ``pending`` opens afterwards."""

    code: int
    reason: str
    pending: _Link | None = None


type _Dispatch = _Delivery | _CloseNotice


@dataclass(slots=True)
class _Tasks:
    """Background tasks kept alive until they finish."""

    pending: set[asyncio.Task[None]] = field(default_factory=set)

    def spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self.pending.add(task)
        task.add_done_callback(self._done)
        return task

    def _done(self, task: asyncio.Task[None]) -> None:
        self.pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", exc_info=exc)


class EventSubSession:
    """Logical EventSub socket session.

    Callers observe the session only through callbacks and read-only
    properties. Frames are read, deduplicated and timed as they arrive; their
    callbacks run one at a time, in arrival order, on a separate dispatch task,
    so a slow callback never delays keepalive handling. Callbacks never run
    after the ``on_close`` call of an explicit :meth:`close` returns.
    """

    def __init__(
        self,
        *,
        authorization: Authorization | None = None,
        callbacks: SessionCallbacks | None = None,
        config: SessionConfig | None = None,
        connector: Connector | None = None,
    ) -> None:
        """Initialize the session without connecting.

        Args:
            authorization: Validated token the caller subscribes with.
            callbacks: Lifecycle hooks (defaults to none).
            config: Session settings (defaults to SessionConfig()).
            connector: Opens a physical connection for a URL (defaults to
                aiohttp client websockets).
        """
        self.authorization = authorization
        self.callbacks = callbacks or SessionCallbacks()
        self.config = config or SessionConfig()
        self._owned_connector: WebSocketConnector | None = None
        if connector is None:
            self._owned_connector = connector = WebSocketConnector()
        self._connector: Connector = connector

        self._state: _State = _Closed()
        self._started = False
        self._closed = asyncio.Event()
        self._watchdog: asyncio.TimerHandle | None = None
        self._last_message_id: str | None = None
        self._connected_at: datetime | None = None
        self._tasks = _Tasks()
        self._queue: asyncio.Queue[_Dispatch | None] = asyncio.Queue()
        self._stopped = False

    def __repr__(self) -> str:
        """Return state and session id."""
        return f"EventSubSession(state={self.state.value!r}, session_id={self.session_id!r})"

    async def __aenter__(self) -> Self:
        """Start the session.

        Returns:
            Session with its first connection opened.
        """
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the session."""
        await self.close()

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        match self._state:
            case _Connecting():
                return SessionState.CONNECTING
            case _Active():
                return SessionState.ACTIVE
            case _Reconnecting():
                return SessionState.RECONNECTING
            case _:
                return SessionState.CLOSED

    @property
    def session(self) -> SessionInfo | None:
        """Latest server session object, None before the welcome."""
        match self._state:
            case _Active(session=session) | _Reconnecting(session=session):
                return session
            case _:
                return None

    @property
    def session_id(self) -> str | None:
        """Id to put into subscription transports, None before the welcome."""
        session = self.session
        return session.id if session is not None else None

    @property
    def keepalive_timeout_seconds(self) -> int | None:
        """Server keepalive interval, None before the welcome."""
        match self._state:
            case _Active(session=session):
                return session.keepalive_timeout_seconds
            case _Reconnecting(keepalive_timeout_seconds=seconds):
                return seconds
            case _:
                return None

    @property
    def connected_at(self) -> datetime | None:
        """Time of the first welcome; reconnects do not change it."""
        return self._connected_at

    @property
    def closed(self) -> bool:
        """True once the session is terminal."""
        return self._closed.is_set()

    def transport(self) -> WebSocketTransport:
        """Return the subscription transport for the current session.

        Raises:
            TwitchError: If no welcome has been received yet.
        """
        session_id = self.session_id
        if session_id is None:
            msg = "Session has no id yet - wait for the welcome message"
            raise TwitchError(msg)
        return websocket_transport(session_id)

    async def start(self) -> None:
        """Open the first connection.

        Connection failures are reported through ``on_close`` and retried like
        any other close.

        Raises:
            TwitchError: If the session was already started.
        """
        if self._started:
            msg = "Session already started"
            raise TwitchError(msg)
        self._started = True
        link = _Link(self.config.url)
        self._state = _Connecting(link)
        self._tasks.spawn(self._dispatch())
        await self._open(link)

    async def wait_closed(self) -> None:
        """Wait until the session is terminal."""
        await self._closed.wait()

    async def close(self) -> None:
        """Close the session without reconnecting (idempotent).

        Invokes ``on_close`` once with the normal closure code.
        """
        if isinstance(self._state, _Closed):
            self._started = True
            await self._finish()
            return
        links = self._links()
        self._cancel_watchdog()
        for link in links:
            link.live = False
            link.cancel_timers()
        self._state = _Closed(CLOSE_NORMAL, CLOSE_NORMAL_REASON)
        self._stopped = True
        logger.info("Closing session")

        await self._invoke_close(CLOSE_NORMAL, CLOSE_NORMAL_REASON)
        await asyncio.gather(
            *(self._close_socket(link, CLOSE_NORMAL, CLOSE_NORMAL_REASON) for link in links)
        )
        await self._finish()

    def _links(self) -> list[_Link]:
        match self._state:
            case _Connecting(link=link) | _Active(link=link):
                return [link]
            case _Reconnecting(old=old, new=new):
                return [old, new]
            case _:
                return []

    def _primary_link(self) -> _Link | None:
        match self._state:
            case _Connecting(link=link) | _Active(link=link):
                return link
            case _Reconnecting(new=new):
                return new
            case _:
                return None

    async def _open(self, link: _Link) -> None:
        """Connect ``link`` and start reading from it."""
        loop = asyncio.get_running_loop()
        link.pending_open = None
        link.welcome_guard = loop.call_later(
            self.config.welcome_timeout, self._on_welcome_timeout, link
        )
        logger.debug("Connecting to %s", link.url)
        try:
            socket = await self._connector(link.url)
        except (ClientError, OSError, TimeoutError, RuntimeError) as exc:
            logger.warning("Failed to connect to %s: %s", link.url, exc)
            if link.live:
                self._handle_close(link, CLOSE_ABNORMAL, str(exc) or type(exc).__name__)
            return

        link.socket = socket
        if not link.live:
            link.closing = True
            await self._close_socket(link, CLOSE_NORMAL, CLOSE_NORMAL_REASON)
            return
        self._tasks.spawn(self._read(link))

    async def _read(self, link: _Link) -> None:
        """Feed frames from one physical connection until it closes."""
        socket = link.socket
        if socket is None:
            return
        code, reason = CLOSE_ABNORMAL, "Connection lost"
        try:
            while True:
                message = await socket.receive()
                if message.type in _TEXT_TYPES:
                    if link.live:
                        self._receive(link, message.data)
                    continue
                if message.type in _CLOSE_TYPES:
                    if message.type == WSMsgType.CLOSE:
                        code, reason = int(message.data), str(message.extra or "")
                    elif message.type == WSMsgType.ERROR:
                        reason = str(message.data)
                    else:
                        code = getattr(socket, "close_code", None) or CLOSE_ABNORMAL
                    break
        except (ClientError, OSError) as exc:
            reason = str(exc) or type(exc).__name__

        if link.live:
            self._handle_close(link, code, reason)

    def _receive(self, link: _Link, data: str | bytes) -> None:
        """Decode, deduplicate and apply one frame, then queue its callbacks."""
        self._cancel_watchdog()
        try:
            frame = decode_frame(data)
            if (is_session_welcome(frame) or is_session_reconnect(frame)) and frame.session is None:
                msg = f"{frame.message_type} frame without a valid session"
                raise FrameError(msg)
        except FrameError as exc:
            self._arm_watchdog()
            self._handle_malformed(link, exc)
            return

        if frame.message_id == self._last_message_id:
            logger.debug("Dropping redelivered message %s", frame.message_id)
            self._arm_watchdog()
            return
        self._last_message_id = frame.message_id

        is_reconnected = False
        session = frame.session
        if is_session_welcome(frame) and session is not None:
            is_reconnected = self._apply_welcome(link, session)
        elif is_session_reconnect(frame) and session is not None:
            self._apply_reconnect(link, session)
        self._arm_watchdog()
        self._queue.put_nowait(_Delivery(frame, is_reconnected))

    async def _dispatch(self) -> None:
        """Run queued callbacks until the session finishes."""
        while (item := await self._queue.get()) is not None:
            if self._stopped:
                continue
            match item:
                case _Delivery(frame=frame, is_reconnected=is_reconnected):
                    await self._deliver(frame, is_reconnected)
                case _CloseNotice(code=code, reason=reason, pending=pending):
                    await self._report_close(code, reason, pending)

    async def _deliver(self, frame: Frame, is_reconnected: bool) -> None:
        await self._run_callback("on_message", self.callbacks.on_message, frame)
        if self._stopped:
            return

        if is_session_welcome(frame):
            await self._run_callback(
                "on_welcome", self.callbacks.on_welcome, frame, is_reconnected
            )
        elif is_session_keepalive(frame):
            await self._run_callback("on_keepalive", self.callbacks.on_keepalive, frame)
        elif is_notification(frame):
            await self._run_callback("on_notification", self.callbacks.on_notification, frame)
        elif is_session_reconnect(frame):
            await self._run_callback("on_reconnect", self.callbacks.on_reconnect, frame)
        elif is_revocation(frame):
            await self._run_callback("on_revocation", self.callbacks.on_revocation, frame)
        else:
            logger.debug("Unknown message type %s", frame.message_type)

    def _handle_malformed(self, link: _Link, exc: FrameError) -> None:
        if self.config.strict_validation:
            logger.warning("Closing connection after malformed frame: %s", exc)
            self._abandon(link, CLOSE_PROTOCOL_ERROR, CLOSE_PROTOCOL_ERROR_REASON)
        else:
            logger.warning("Dropping malformed frame: %s", exc)

    def _apply_welcome(self, link: _Link, session: SessionInfo) -> bool:
        """Make ``link`` the active connection.

        Returns:
            True if the welcome completes a server-requested reconnect.
        """
        if link.welcome_guard is not None:
            link.welcome_guard.cancel()
            link.welcome_guard = None

        is_reconnected = False
        if isinstance(self._state, _Reconnecting) and self._state.new is link:
            is_reconnected = True
            self._discard(self._state.old, CLOSE_NORMAL, CLOSE_NORMAL_REASON)
            logger.info("Reconnected session %s", session.id)
        else:
            logger.info("Session %s welcomed", session.id)

        self._state = _Active(link, session)
        if self._connected_at is None:
            self._connected_at = session.connected_at or datetime.now(UTC)
        return is_reconnected

    def _apply_reconnect(self, link: _Link, session: SessionInfo) -> None:
        """Move the session to the URL given by the server."""
        if not session.reconnect_url:
            logger.warning("Reconnect message for %s has no reconnect_url", session.id)
            return

        if isinstance(self._state, _Reconnecting):
            self._discard(self._state.old, CLOSE_NORMAL, CLOSE_NORMAL_REASON)
        interval = self.keepalive_timeout_seconds
        link.live = False
        new = _Link(session.reconnect_url)
        self._state = _Reconnecting(
            old=link,
            new=new,
            session=session,
            keepalive_timeout_seconds=interval,
        )
        logger.info("Server requested reconnect to %s", session.reconnect_url)
        self._tasks.spawn(self._open(new))

    def _handle_close(self, link: _Link, code: int, reason: str) -> None:
        """Retire a closed connection and queue its report."""
        if isinstance(self._state, _Closed):
            return
        self._cancel_watchdog()
        for other in self._links():
            self._discard(other, code, reason)
        self._discard(link, code, reason)
        logger.info("Connection closed: code=%s reason=%s", code, reason)

        pending: _Link | None = None
        if self.config.reconnect_enabled:
            pending = _Link(self.config.url)
            self._state = _Connecting(pending)
        else:
            self._state = _Closed(code, reason)

        self._queue.put_nowait(_CloseNotice(code, reason, pending))

    async def _report_close(self, code: int, reason: str, pending: _Link | None) -> None:
        """Invoke ``on_close``, then schedule the fresh connection."""
        await self._invoke_close(code, reason)

        still_pending = isinstance(self._state, _Connecting) and self._state.link is pending
        if pending is not None and still_pending:
            delay = self.config.reconnect_delay_ms / 1000
            logger.debug("Reconnecting in %.3fs", delay)
            pending.pending_open = asyncio.get_running_loop().call_later(
                delay, self._reopen, pending
            )
        elif isinstance(self._state, _Closed):
            await self._finish()

    def _reopen(self, link: _Link) -> None:
        if link.live:
            self._tasks.spawn(self._open(link))

    def _abandon(self, link: _Link, code: int, reason: str) -> None:
        """Force-close a connection and recover through the close path."""
        if not link.live:
            return
        self._handle_close(link, code, reason)

    def _discard(self, link: _Link, code: int, reason: str) -> None:
        """Neutralize ``link`` and close its socket in the background."""
        link.live = False
        link.cancel_timers()
        if link.socket is not None and not link.closing:
            link.closing = True
            self._tasks.spawn(self._close_socket(link, code, reason))

    async def _close_socket(self, link: _Link, code: int, reason: str) -> None:
        link.closing = True
        if link.socket is None:
            return
        try:
            await link.socket.close(
                code=code, message=reason.encode()[:_CLOSE_REASON_MAX_BYTES]
            )
        except (ClientError, OSError, RuntimeError) as exc:
            logger.debug("Error closing socket to %s: %s", link.url, exc)

    def _on_welcome_timeout(self, link: _Link) -> None:
        link.welcome_guard = None
        if not link.live:
            return
        reason = CLOSE_WELCOME_TIMEOUT_REASON.format(seconds=self.config.welcome_timeout)
        logger.warning("No welcome from %s: %s", link.url, reason)
        self._abandon(link, CLOSE_NETWORK_TIMEOUT, reason)

    def _arm_watchdog(self) -> None:
        self._cancel_watchdog()
        interval = self.keepalive_timeout_seconds
        if interval is None:
            return
        self._watchdog = asyncio.get_running_loop().call_later(
            interval + self.config.keepalive_grace, self._on_keepalive_timeout
        )

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _on_keepalive_timeout(self) -> None:
        self._watchdog = None
        link = self._primary_link()
        if link is None:
            return
        reason = CLOSE_KEEPALIVE_TIMEOUT_REASON.format(
            seconds=self.keepalive_timeout_seconds or 0
        )
        logger.warning("Keepalive missed: %s", reason)
        self._abandon(link, CLOSE_NETWORK_TIMEOUT, reason)

    async def _invoke_close(self, code: int, reason: str) -> None:
        await self._run_callback("on_close", self.callbacks.on_close, code, reason)

    @staticmethod
    async def _run_callback(
        name: str, callback: Callable[..., Awaitable[None]] | None, *args: Any
    ) -> None:
        if callback is None:
            return
        try:
            await callback(*args)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if isinstance(exc, asyncio.CancelledError):
                raise
            logger.exception("Callback %s failed", name)

    async def _finish(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put_nowait(None)
        if self._owned_connector is not None:
            await self._owned_connector.close()
