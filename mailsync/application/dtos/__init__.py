"""Application DTOs (no ORM dependency)."""

from mailsync.application.dtos.connection import ConnectionResult, WatchSubscriptionResult
from mailsync.application.dtos.message import StoredMessageCreate, StoredMessageRef
from mailsync.application.dtos.provider import (
    FetchedMessage,
    HistoryPage,
    MessageListPage,
    RefreshedCredential,
    WatchRegistration,
)
from mailsync.application.dtos.sync import (
    ConnectionMigrationResult,
    HistorySyncResult,
    IngestResult,
    MigrationResult,
    MigrationStatus,
    ProcessingResult,
    RenewalSweepResult,
    RollbackResult,
    ScheduledSyncOutcome,
    SyncResult,
    WatchRenewalResult,
    WatchSetupResult,
    WatchStopResult,
)

__all__ = [
    "ConnectionMigrationResult",
    "ConnectionResult",
    "FetchedMessage",
    "HistoryPage",
    "HistorySyncResult",
    "IngestResult",
    "MessageListPage",
    "MigrationResult",
    "MigrationStatus",
    "ProcessingResult",
    "RefreshedCredential",
    "RenewalSweepResult",
    "RollbackResult",
    "ScheduledSyncOutcome",
    "StoredMessageCreate",
    "StoredMessageRef",
    "SyncResult",
    "WatchRegistration",
    "WatchRenewalResult",
    "WatchSetupResult",
    "WatchStopResult",
    "WatchSubscriptionResult",
]
