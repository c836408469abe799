"""Domain enumerations for the sync engine."""

from enum import Enum


class ConnectionStatus(str, Enum):
    """Linked mailbox status. INVALID means the user must re-authenticate."""

    ACTIVE = "active"
    INVALID = "invalid"


class WatchStatus(str, Enum):
    """Push-notification subscription lifecycle.

    pending -> active -> renewing -> active | failed; active -> expired.
    """

    PENDING = "pending"
    ACTIVE = "active"
    RENEWING = "renewing"
    FAILED = "failed"
    EXPIRED = "expired"


class MessageStatus(str, Enum):
    """Status of a stored message in the extraction pipeline."""

    FETCHED = "fetched"
    PROCESSED = "processed"
    FAILED = "failed"


class ErrorCategory(str, Enum):
    """How the engine reacts to a failure."""

    TRANSIENT = "transient"
    FATAL = "fatal"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_GRANT = "invalid_grant"
    HISTORY_GAP = "history_gap"
