"""DTOs for linked mailboxes and their push subscriptions (no dependency on ORM)."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ConnectionResult:
    """Linked mailbox read-model (result of get_by_id, get_by_email_address, list_*)."""

    id: str
    user_id: str
    email_address: str
    access_token: str | None
    refresh_token: str | None
    token_expiry: datetime | None
    status: str
    last_error: str | None
    watch_enabled: bool
    watch_setup_at: datetime | None
    last_watch_error: str | None
    auto_sync_enabled: bool
    auto_sync_interval_minutes: int
    last_auto_sync_at: datetime | None
    last_history_id: str | None


@dataclass(frozen=True)
class WatchSubscriptionResult:
    """Push subscription read-model; one row per connection."""

    id: str
    user_id: str
    connection_id: str
    history_id: str | None
    expiration: datetime | None
    status: str
    renewal_attempts: int
    last_error: str | None
    last_renewed_at: datetime | None
