"""Ephemeral result objects returned by the sync services (never persisted)."""

from dataclasses import dataclass, field

from mailsync.application.dtos.message import StoredMessageRef


@dataclass(frozen=True)
class WatchSetupResult:
    success: bool
    history_id: str | None = None
    expiration: str | None = None
    error: str | None = None
    requires_reconnect: bool = False


@dataclass(frozen=True)
class WatchRenewalResult:
    subscription_id: str
    connection_id: str | None
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class WatchStopResult:
    connection_id: str
    success: bool
    already_stopped: bool = False
    error: str | None = None


@dataclass
class IngestResult:
    """Outcome of fetch-and-store for a list of message ids."""

    stored: list[StoredMessageRef] = field(default_factory=list)
    duplicates: int = 0
    failed: list[dict[str, str]] = field(default_factory=list)


@dataclass
class ProcessingResult:
    processed: int = 0
    transaction_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class SyncResult:
    """Outcome of one full (time-windowed) sync pass.

    retry_after_seconds is set when the pass was stopped by a rate-limit or
    quota error, so a scheduler knows when to come back.
    """

    success: bool = False
    emails_found: int = 0
    emails_synced: int = 0
    transactions_processed: int = 0
    email_ids: list[str] = field(default_factory=list)
    transaction_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    requires_reconnect: bool = False
    refreshed_credentials: bool = False
    retry_after_seconds: float | None = None


@dataclass
class HistorySyncResult:
    success: bool = False
    new_messages: int = 0
    processed_transactions: int = 0
    new_history_id: str | None = None
    email_ids: list[str] = field(default_factory=list)
    transaction_ids: list[str] = field(default_factory=list)
    error: str | None = None
    used_full_sync: bool = False


@dataclass
class MigrationResult:
    success: bool = False
    total_connections: int = 0
    watches_setup: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class RollbackResult:
    success: bool
    disabled: int


@dataclass(frozen=True)
class MigrationStatus:
    total_connections: int
    watch_enabled: int
    watch_disabled: int
    percentage_migrated: int


@dataclass(frozen=True)
class ConnectionMigrationResult:
    connection_id: str
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class ScheduledSyncOutcome:
    connection_id: str
    email_address: str
    result: SyncResult


@dataclass
class RenewalSweepResult:
    renewed: int = 0
    failed: int = 0
    results: list[WatchRenewalResult] = field(default_factory=list)
