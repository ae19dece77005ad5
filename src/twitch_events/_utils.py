"""Masking and log formatting helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from .constants import LOG_TEXT_TRUNCATE_LENGTH, TOKEN_MASK_LENGTH

if TYPE_CHECKING:  # pragma: no cover
    from pydantic import ValidationError

_ELLIPSIS = "..."


def mask_secret(secret: str, *, visible: int = TOKEN_MASK_LENGTH) -> str:
    """Replace all but the last ``visible`` characters with ``*``.

    Secrets no longer than ``visible`` are masked completely.
    """
    if visible <= 0 or len(secret) <= visible:
        return "*" * len(secret)
    return "*" * (len(secret) - visible) + secret[-visible:]


def mask_secret_in_url(url: str, secret: str) -> str:
    """Mask ``secret`` in ``url``, raw and percent-encoded."""
    if not secret:
        return url
    masked = mask_secret(secret)
    return url.replace(secret, masked).replace(quote(secret, safe=""), masked)


def format_validation_error_locations(error: ValidationError) -> str:
    """Return the sorted, comma-separated dotted paths of failing fields."""
    locations = {
        ".".join(str(part) for part in detail.get("loc", ())) or "<root>"
        for detail in error.errors()
    }
    return ", ".join(sorted(locations))


def trim_for_log(text: str, *, limit: int = LOG_TEXT_TRUNCATE_LENGTH) -> str:
    """Cut ``text`` to ``limit`` characters, ending in ``...`` when shortened."""
    if len(text) <= limit:
        return text
    if limit <= len(_ELLIPSIS):
        return _ELLIPSIS[:limit]
    return text[: limit - len(_ELLIPSIS)] + _ELLIPSIS
