"""Notification routing with decorator-based handler registration."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial
from inspect import iscoroutinefunction

from .messages import notification_key
from .models import Frame

logger: logging.Logger = logging.getLogger(__name__)
"""Logger for the twitch_events.router module."""
type HandlerFunc = Callable[[Frame], Awaitable[None]]
type _RouteKey = tuple[str, str | None] | None


def _is_async_callable(func: object) -> bool:
    """Return whether ``func`` produces an awaitable when invoked once.

    Args:
        func: Candidate handler or callable-like object.

    Returns:
        ``True`` if the callable is async or returns a coroutine; otherwise
        ``False``.
    """
    if iscoroutinefunction(func):
        return True

    if callable(func):
        try:
            call_method = type(func).__call__
        except AttributeError:
            call_method = None
        if call_method and iscoroutinefunction(call_method):
            return True

    underlying = getattr(func, "func", None)
    if callable(underlying) and underlying is not func:
        return _is_async_callable(underlying)

    return False


def _handler_name(handler: object) -> str:
    """Return a safe name for logging handler failures.

    Args:
        handler: Handler object or partial.

    Returns:
        Best-effort human-readable name for logging.
    """
    seen: set[int] = set()
    current: object = handler

    while id(current) not in seen:
        seen.add(id(current))
        name: str | None = getattr(current, "__name__", None)
        if name:
            return name

        if isinstance(current, partial):
            current = current.func
            continue

        wrapped = getattr(current, "__wrapped__", None)
        if callable(wrapped) and wrapped is not current:
            current = wrapped
            continue

        break

    return type(current).__name__


class NotificationRouter:
    """Routes notification frames to registered handlers.

    Plug :meth:`dispatch` into ``SessionCallbacks.on_notification``. Handlers
    run in registration order; wildcard handlers first, then handlers for the
    subscription type, then handlers for the exact type and version. Errors are
    logged but don't prevent other handlers from running.
    """

    __slots__: tuple[str, ...] = ("_handlers",)

    def __init__(self) -> None:
        """Initialize router with an empty handler registry."""
        self._handlers: dict[_RouteKey, list[HandlerFunc]] = {}

    def _register(self, key: _RouteKey) -> Callable[[HandlerFunc], HandlerFunc]:
        def decorator(func: HandlerFunc) -> HandlerFunc:
            if not _is_async_callable(func):
                msg: str = f"Handler {_handler_name(func)} must be async"
                raise TypeError(msg)
            self._handlers.setdefault(key, []).append(func)
            return func

        return decorator

    def on(
        self, subscription_type: str, version: str | None = None
    ) -> Callable[[HandlerFunc], HandlerFunc]:
        """Register handler for a subscription type.

        Args:
            subscription_type: Type such as ``channel.chat.message``.
            version: Exact version to match; any version if omitted.

        Returns:
            Decorator that registers the handler and returns it unchanged.
        """
        return self._register((str(subscription_type), version))

    def on_any(self) -> Callable[[HandlerFunc], HandlerFunc]:
        """Register handler for every notification.

        Returns:
            Decorator that registers the handler and returns it unchanged.
        """
        return self._register(None)

    async def dispatch(self, frame: Frame) -> None:
        """Dispatch a notification to matching handlers.

        Frames that are not notifications are ignored.

        Args:
            frame: Notification frame to route.
        """
        key = notification_key(frame)
        if key is None:
            return
        subscription_type, version = key

        handlers: list[HandlerFunc] = [
            *self._handlers.get(None, []),
            *self._handlers.get((subscription_type, None), []),
            *self._handlers.get((subscription_type, version), []),
        ]

        if not handlers:
            logger.debug("No handler for %s v%s", subscription_type, version)
            return

        logger.debug(
            "Dispatching %s v%s message %s to %d handlers",
            subscription_type,
            version,
            frame.message_id,
            len(handlers),
        )

        for handler in handlers:
            try:
                await handler(frame)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                if isinstance(exc, asyncio.CancelledError):
                    raise
                logger.exception(
                    "Handler %s failed for message %s (type: %s)",
                    _handler_name(handler),
                    frame.message_id,
                    subscription_type,
                )
