"""Tests for parameter serialization and the timed request executor."""

import asyncio
import re

import pytest
from aiohttp import ClientSession

from twitch_events import RawResponse, RequestAbortedError, RequestExecutor, RequestTimeoutError
from twitch_events.constants import REQUEST_TIMEOUT_REASON
from twitch_events.fetch import build_url, serialize_params

ITEMS_URL = "https://example.test/items"


@pytest.fixture
async def executor():
    """Executor over a real aiohttp session with a short timeout."""
    async with ClientSession() as session:
        yield RequestExecutor(session, timeout=0.05)


@pytest.fixture
def slow_send(mocker):
    """Replace the network exchange with one that takes 0.2 seconds."""

    async def send(method, url, **kwargs):
        await asyncio.sleep(0.2)
        return RawResponse(status=200, text='{"ok": true}')

    return lambda executor: mocker.patch.object(executor, "_send", side_effect=send)


class TestSerializeParams:
    """Test query string serialization."""

    def test_skips_falsy_and_expands_lists(self):
        """Falsy values should vanish and lists should repeat the key."""
        assert serialize_params({"a": 1, "b": 0, "c": "x", "d": [1, 2]}) == "a=1&c=x&d=1&d=2"

    def test_skips_falsy_list_items(self):
        """Falsy entries inside lists should be skipped."""
        assert serialize_params({"id": ["1", "", None, "2"]}) == "id=1&id=2"

    def test_booleans(self):
        """True should serialize as ``true`` and False should be skipped."""
        assert serialize_params({"yes": True, "no": False}) == "yes=true"

    def test_encodes_keys_and_values(self):
        """Reserved characters should be percent-encoded."""
        assert serialize_params({"a b": "x&y=z/"}) == "a%20b=x%26y%3Dz%2F"

    def test_empty(self):
        """No pairs should produce an empty string."""
        assert serialize_params({"a": None, "b": []}) == ""


class TestBuildUrl:
    """Test URL construction with query and fragment parameters."""

    def test_appends_query(self):
        """Query should be appended with ``?``."""
        assert build_url(ITEMS_URL, search={"a": 1}) == f"{ITEMS_URL}?a=1"

    def test_extends_existing_query(self):
        """Existing query strings should be extended with ``&``."""
        assert build_url(f"{ITEMS_URL}?x=1", search={"a": 1}) == f"{ITEMS_URL}?x=1&a=1"

    def test_fragment(self):
        """Fragment parameters should follow a ``#``."""
        url = build_url(ITEMS_URL, search={"a": 1}, fragment={"f": "y"})

        assert url == f"{ITEMS_URL}?a=1#f=y"

    def test_all_falsy_leaves_url_unchanged(self):
        """A search that serializes to nothing should not add a ``?``."""
        assert build_url(ITEMS_URL, search={"a": None}) == ITEMS_URL


class TestRequestExecutor:
    """Test request execution and timeout handling."""

    async def test_request_returns_raw_response(self, executor, mock_response):
        """The response status, body and headers should be captured."""
        mock_response.get(
            re.compile(rf"^{re.escape(ITEMS_URL)}\?a=1&c=x$"),
            status=201,
            body='{"data": []}',
            headers={"X-Test": "1"},
        )

        response = await executor.request("GET", ITEMS_URL, search={"a": 1, "b": "", "c": "x"})

        assert response.status == 201
        assert response.json() == {"data": []}
        assert response.headers["X-Test"] == "1"

    async def test_json_rejects_non_object(self):
        """Decoding a non-object body should raise ValueError."""
        with pytest.raises(ValueError, match="expected a JSON object"):
            RawResponse(status=200, text="[1]").json()

    async def test_timeout_raises_request_timeout(self, executor, slow_send):
        """Exceeding the timeout should cancel the request."""
        slow_send(executor)
        loop = asyncio.get_running_loop()
        started = loop.time()

        with pytest.raises(RequestTimeoutError) as exc_info:
            await executor.request("GET", ITEMS_URL)

        elapsed = loop.time() - started
        assert exc_info.value.reason == REQUEST_TIMEOUT_REASON
        assert 0.049 <= elapsed < 0.15

    async def test_per_request_timeout_override(self, executor, slow_send):
        """A per-request timeout should replace the default."""
        slow_send(executor)

        response = await executor.request("GET", ITEMS_URL, timeout=1.0)

        assert response.status == 200

    async def test_zero_timeout_waits(self, executor, slow_send):
        """A zero timeout should disable the guard."""
        slow_send(executor)

        response = await executor.request("GET", ITEMS_URL, timeout=0)

        assert response.status == 200

    async def test_abort_handle_disables_timeout(self, executor, slow_send):
        """With a caller abort handle no timeout guard should be installed."""
        slow_send(executor)

        response = await executor.request("GET", ITEMS_URL, abort=asyncio.Event())

        assert response.status == 200

    async def test_abort_handle_cancels(self, executor, slow_send):
        """Setting the abort handle should cancel the request."""
        slow_send(executor)
        abort = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, abort.set)

        with pytest.raises(RequestAbortedError):
            await executor.request("GET", ITEMS_URL, abort=abort)
