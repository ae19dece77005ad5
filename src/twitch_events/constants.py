"""Constants for the Twitch EventSub and Helix API client."""

from http import HTTPStatus

# API endpoints
EVENTSUB_WEBSOCKET_URL = "wss://eventsub.wss.twitch.tv/ws"
HELIX_BASE_URL = "https://api.twitch.tv/helix"
OAUTH_VALIDATE_URL = "https://id.twitch.tv/oauth2/validate"
OAUTH_REVOKE_URL = "https://id.twitch.tv/oauth2/revoke"

# Request defaults
DEFAULT_TIMEOUT = 5.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF = 1.0
DEFAULT_RETRY_FACTOR = 2.0
DEFAULT_RETRY_MAX_DELAY = 30.0
REQUEST_TIMEOUT_REASON = "RequestTimeout"
REQUEST_ABORTED_REASON = "RequestAborted"

# Session defaults
DEFAULT_RECONNECT_DELAY_MS = 500
WELCOME_TIMEOUT = 10.0
KEEPALIVE_GRACE = 2.0

# Locally produced close codes
CLOSE_NORMAL = 1000
CLOSE_NORMAL_REASON = "ClientRefused: Client closed the connection"
CLOSE_ABNORMAL = 1006
CLOSE_NETWORK_TIMEOUT = 4005
CLOSE_WELCOME_TIMEOUT_REASON = (
    "NetworkTimeout: client didn't receive a welcome message within {seconds:g} seconds"
)
CLOSE_KEEPALIVE_TIMEOUT_REASON = (
    "NetworkTimeout: client didn't receive any message within {seconds:g} seconds"
)
CLOSE_PROTOCOL_ERROR = 4006
CLOSE_PROTOCOL_ERROR_REASON = "ProtocolError: client received a malformed message"

# Rate limiting (Helix default bucket)
RATE_LIMIT_MAX_RATE = 800
RATE_LIMIT_TIME_PERIOD = 60

# Blocked terms
BLOCKED_TERM_MIN_LENGTH = 2
BLOCKED_TERM_MAX_LENGTH = 500

# HTTP handling
AUTH_ERROR_STATUSES = {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN}
RETRY_STATUS_CODES = {
    HTTPStatus.INTERNAL_SERVER_ERROR.value,
    HTTPStatus.BAD_GATEWAY.value,
    HTTPStatus.SERVICE_UNAVAILABLE.value,
    HTTPStatus.GATEWAY_TIMEOUT.value,
    HTTPStatus.TOO_MANY_REQUESTS.value,
}

# Logging
TOKEN_MASK_LENGTH = 4
LOG_TEXT_TRUNCATE_LENGTH = 200
