"""Core constants shared by the sync services.

Defaults below mirror Settings; services take them as constructor arguments
so tests can construct components without loading configuration.
"""

# Gmail message ids are listed and fetched under these rate-limit key prefixes,
# suffixed with the connection id so fan-out for one mailbox shares a counter.
RATE_KEY_MESSAGES_GET = "messages-get"
RATE_KEY_MESSAGES_LIST = "messages-list"
RATE_KEY_HISTORY_LIST = "history-list"

DEFAULT_MAX_REQUESTS_PER_WINDOW = 50
DEFAULT_WINDOW_SECONDS = 1.0

# Provider-less defaults for ErrorHandler.get_retry_delay (seconds)
RATE_LIMIT_DEFAULT_DELAY_SECONDS = 60.0
QUOTA_EXCEEDED_DEFAULT_DELAY_SECONDS = 300.0
GENERIC_RETRY_DELAY_SECONDS = 1.0

RECONNECT_MESSAGE = (
    "Your mailbox connection has expired or was revoked. "
    "Please reconnect your account."
)

# Maximum chars of an error stored on a connection / subscription row
MAX_STORED_ERROR_LENGTH = 1000


def rate_key(prefix: str, connection_id: str) -> str:
    """Build a rate-limit key scoped to one connection."""
    return f"{prefix}-{connection_id}"
