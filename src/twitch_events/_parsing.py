"""Parse raw socket frames and REST bodies into typed models."""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ._utils import format_validation_error_locations, trim_for_log
from .exceptions import FrameError, TwitchError
from .models import Frame

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


def decode_json_object(text: str) -> dict[str, Any]:
    """Parse text as a JSON object.

    Args:
        text: Raw text.

    Returns:
        Parsed JSON dictionary.

    Raises:
        ValueError: If the text is not JSON or not an object.
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        msg = "expected a JSON object"
        raise ValueError(msg)
    return data


def decode_frame(text: str | bytes) -> Frame:
    """Decode a socket text frame.

    Args:
        text: Frame data as received.

    Returns:
        Validated frame.

    Raises:
        FrameError: If the data is not a JSON object with valid metadata.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    try:
        data = decode_json_object(text)
    except ValueError as exc:
        msg = f"Invalid frame: {exc}"
        raise FrameError(msg, response_text=text) from exc
    try:
        return Frame.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid frame at {format_validation_error_locations(exc)}"
        raise FrameError(msg, response_text=text) from exc


def parse_one(payload: dict[str, Any], model: type[_ModelT]) -> _ModelT:
    """Validate the first item of a Helix ``data`` list.

    Args:
        payload: Decoded response body.
        model: Resource model.

    Returns:
        The single resource.

    Raises:
        TwitchError: If ``data`` is missing, empty, or invalid.
    """
    items = payload.get("data")
    if isinstance(items, list):
        if not items:
            msg = "Invalid API response: empty data"
            raise TwitchError(msg)
        items = items[0]
    try:
        return model.model_validate(items)
    except ValidationError as exc:
        msg = f"Invalid API response at {format_validation_error_locations(exc)}"
        raise TwitchError(msg, response_text=trim_for_log(str(payload))) from exc


def parse_many(
    payload: dict[str, Any],
    model: type[_ModelT],
    *,
    strict_validation: bool,
) -> list[_ModelT]:
    """Validate every item of a Helix ``data`` list.

    Args:
        payload: Decoded response body.
        model: Resource model.
        strict_validation: If True, raise on any invalid item. If False, log and skip.

    Returns:
        List of validated resources.

    Raises:
        TwitchError: If ``data`` is not a list, or an item is invalid in strict mode.
    """
    items = payload.get("data", [])
    if not isinstance(items, list):
        msg = "Invalid API response: expected a data list"
        raise TwitchError(msg, response_text=trim_for_log(str(payload)))

    results: list[_ModelT] = []
    for item in items:
        try:
            results.append(model.model_validate(item))
        except ValidationError as exc:
            locations = format_validation_error_locations(exc)
            if strict_validation:
                msg = f"Invalid API response at {locations}"
                raise TwitchError(msg) from exc
            item_id = str(item.get("id", "<unknown>")) if isinstance(item, dict) else "<unknown>"
            logger.warning("item_id=%s locations=%s", item_id, locations)
    return results
