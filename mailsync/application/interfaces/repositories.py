"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs only; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from mailsync.domain.enums import MessageStatus, WatchStatus

if TYPE_CHECKING:
    from mailsync.application.dtos.connection import (
        ConnectionResult,
        WatchSubscriptionResult,
    )
    from mailsync.application.dtos.message import StoredMessageCreate


# Connection repository interface
class IConnectionRepository(Protocol):
    """Protocol for linked mailbox persistence (DIP)."""

    async def get_by_id(self, connection_id: str) -> ConnectionResult | None:
        """Return connection by ID."""

    async def get_by_email_address(self, email_address: str) -> ConnectionResult | None:
        """Return the active connection for a mailbox address (push notifications carry only the address)."""

    async def list_all(self) -> list[ConnectionResult]:
        """Return every connection."""

    async def list_by_watch_enabled(
        self, watch_enabled: bool, active_only: bool = True
    ) -> list[ConnectionResult]:
        """Return connections with the given watch flag."""

    async def list_auto_sync_enabled(self) -> list[ConnectionResult]:
        """Return active connections with auto-sync turned on."""

    async def update_credentials(
        self,
        connection_id: str,
        access_token: str,
        token_expiry: datetime,
        refresh_token: str | None = None,
    ) -> None:
        """Persist a refreshed access token; refresh_token only when rotated."""

    async def reset_credentials(self, connection_id: str, error: str) -> None:
        """Mark connection invalid, clear both tokens and the expiry, store error."""

    async def mark_watch_enabled(
        self, connection_id: str, history_id: str, setup_at: datetime
    ) -> None:
        """Set watch_enabled, watch_setup_at, last_history_id; clear last_watch_error."""

    async def mark_watch_disabled(self, connection_id: str) -> None:
        """Clear watch_enabled and last_watch_error."""

    async def set_watch_error(self, connection_id: str, error: str) -> None:
        """Store the latest watch setup failure."""

    async def save_history_checkpoint(self, connection_id: str, history_id: str) -> None:
        """Persist the cursor on the connection and its watch subscription in one unit of work."""

    async def touch_auto_sync(self, connection_id: str, at: datetime) -> None:
        """Stamp last_auto_sync_at."""


# Watch subscription repository interface
class IWatchSubscriptionRepository(Protocol):
    """Protocol for push subscription persistence (DIP)."""

    async def get_by_id(self, subscription_id: str) -> WatchSubscriptionResult | None:
        """Return subscription by ID."""

    async def get_by_connection_id(self, connection_id: str) -> WatchSubscriptionResult | None:
        """Return the subscription for a connection (at most one)."""

    async def upsert_active(
        self,
        user_id: str,
        connection_id: str,
        history_id: str,
        expiration: datetime,
        renewed_at: datetime,
    ) -> WatchSubscriptionResult:
        """Insert or update on connection_id: status active, renewal_attempts 0."""

    async def set_status(
        self,
        subscription_id: str,
        status: WatchStatus,
        last_error: str | None = None,
        increment_attempts: bool = False,
    ) -> None:
        """Move a subscription to status; optionally store error and bump renewal_attempts."""

    async def mark_expired_for_connection(self, connection_id: str) -> None:
        """Mark the connection's subscription expired (no-op when none)."""

    async def list_active_expiring_before(self, cutoff: datetime) -> list[WatchSubscriptionResult]:
        """Return active subscriptions whose expiration is before cutoff."""


# Message store interface
class IMessageStore(Protocol):
    """Protocol for the stored-message table; uniqueness is (user_id, connection_id, message_id)."""

    async def existing_message_ids(
        self, user_id: str, connection_id: str, message_ids: list[str]
    ) -> set[str]:
        """Return the subset of message_ids already stored for this user and connection."""

    async def upsert_ignore_duplicates(self, data: StoredMessageCreate) -> str | None:
        """Insert the message; return new row id, or None when it already existed."""

    async def latest_processed_internal_date(
        self, user_id: str, connection_id: str | None = None
    ) -> datetime | None:
        """Return internal_date of the newest message with status processed."""

    async def set_status(self, stored_id: str, status: MessageStatus) -> None:
        """Update a stored message's pipeline status."""


# Transaction boundary interface
class IUnitOfWork(Protocol):
    """Commit point for the session the repositories share.

    Sweeps commit after each connection, and ingestion commits stored
    messages before the processor sees their ids.
    """

    async def commit(self) -> None:
        """Make everything written so far durable and visible to other sessions."""

    async def rollback(self) -> None:
        """Discard everything written since the last commit."""
