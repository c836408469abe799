"""Sync trigger API schemas (webhook, cron, watch, migration, metrics)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WebhookAckResponse(BaseModel):
    """Response for POST /webhooks/gmail; 200 for every decoded notification so Pub/Sub stops redelivering."""

    status: str = "ok"
    connection_id: str | None = None
    detail: str | None = None
    new_messages: int = 0
    processed_transactions: int = 0
    new_history_id: str | None = None
    used_full_sync: bool = False


class SyncResultResponse(BaseModel):
    connection_id: str
    email_address: str | None = None
    success: bool
    emails_found: int = 0
    emails_synced: int = 0
    transactions_processed: int = 0
    errors: list[str] = Field(default_factory=list)
    requires_reconnect: bool = False
    retry_after_seconds: float | None = None


class AutoSyncRunResponse(BaseModel):
    """Response for POST /cron/auto-sync."""

    connections_synced: int
    results: list[SyncResultResponse]


class WatchRenewalResponse(BaseModel):
    subscription_id: str
    connection_id: str | None = None
    success: bool
    error: str | None = None


class RenewalSweepResponse(BaseModel):
    """Response for POST /cron/watch-renewal."""

    renewed: int
    failed: int
    results: list[WatchRenewalResponse]


class WatchSetupResponse(BaseModel):
    connection_id: str
    success: bool
    history_id: str | None = None
    expiration: str | None = None
    error: str | None = None
    requires_reconnect: bool = False


class WatchStopResponse(BaseModel):
    connection_id: str
    success: bool
    already_stopped: bool = False
    error: str | None = None


class WatchStatusResponse(BaseModel):
    """Subscription state for a connection (GET /watch/{connection_id})."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    connection_id: str
    history_id: str | None = None
    expiration: datetime | None = None
    status: str
    renewal_attempts: int
    last_error: str | None = None
    last_renewed_at: datetime | None = None


class MigrationErrorItem(BaseModel):
    connection_id: str
    error: str


class MigrationResponse(BaseModel):
    success: bool
    total_connections: int
    watches_setup: int
    failed: int
    errors: list[MigrationErrorItem] = Field(default_factory=list)


class RollbackResponse(BaseModel):
    success: bool
    disabled: int


class MigrationStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_connections: int
    watch_enabled: int
    watch_disabled: int
    percentage_migrated: int


class ConnectionMigrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    connection_id: str
    success: bool
    error: str | None = None


class OperationStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    successful: int
    failed: int
    avg_duration_ms: float
    min_duration_ms: float
    max_duration_ms: float
    success_rate: int


class RecentErrorResponse(BaseModel):
    operation: str
    error: str | None = None
    duration_ms: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class PerformanceSummaryResponse(BaseModel):
    """Response for GET /metrics/performance."""

    operations: dict[str, OperationStatsResponse]
    recent_errors: list[RecentErrorResponse]
