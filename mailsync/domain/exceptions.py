"""Domain exceptions for the sync engine.

Provider, credential and history-cursor failures are modelled as typed
exceptions so the ErrorHandler can classify them without inspecting vendor
error classes. Orchestration services catch these and convert them into
result objects; the API layer maps error_code to HTTP status.
"""

from typing import Any


class MailSyncException(Exception):
    """Base exception for all sync engine errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. connection_id, status_code).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API error responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ResourceNotFoundException(MailSyncException):
    """Raised when a connection, subscription or message is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class MailboxProviderError(MailSyncException):
    """A failed call to the remote mailbox provider.

    Carries the HTTP status (None for transport failures), the provider's
    reason string (e.g. "rateLimitExceeded") and a Retry-After hint in
    seconds when the provider supplied one.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.retry_after = retry_after
        super().__init__(
            message,
            "PROVIDER_ERROR",
            {"status_code": status_code, "reason": reason, "retry_after": retry_after},
        )


class HistoryGapError(MailboxProviderError):
    """The history cursor is too old for the provider to resolve into a delta."""

    def __init__(self, start_history_id: str, status_code: int | None = 404) -> None:
        self.start_history_id = start_history_id
        super().__init__(
            f"History cursor {start_history_id} can no longer be resolved",
            status_code=status_code,
            reason="historyGap",
        )
        self.error_code = "HISTORY_GAP"
        self.details["start_history_id"] = start_history_id


class CredentialRefreshError(MailSyncException):
    """Refreshing the access credential failed for a non-terminal reason."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, "CREDENTIAL_REFRESH_ERROR", {"status_code": status_code})


class InvalidGrantError(CredentialRefreshError):
    """The refresh credential was revoked or expired; the user must reconnect."""

    def __init__(self, message: str = "invalid_grant: refresh token expired or revoked") -> None:
        super().__init__(message, status_code=400)
        self.error_code = "INVALID_GRANT"


class InvalidPushNotificationError(MailSyncException):
    """A push envelope could not be validated or decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "INVALID_PUSH_NOTIFICATION")


class SqlNotConfiguredException(MailSyncException):
    """Raised when the SQL store is used but DATABASE_URL is not set."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )
