"""Application services: sync orchestration over the repository and provider ports."""

from mailsync.application.services.batch_processor import (
    BatchItemResult,
    BatchOptions,
    BatchProcessor,
    BatchStats,
)
from mailsync.application.services.credential_service import CredentialService
from mailsync.application.services.error_handler import ErrorHandler, RetryOptions
from mailsync.application.services.history_sync import HistorySync
from mailsync.application.services.message_ingestion import MessageIngestor
from mailsync.application.services.message_processor import NullMessageProcessor
from mailsync.application.services.migration_manager import MigrationManager
from mailsync.application.services.performance_monitor import PerformanceMonitor
from mailsync.application.services.push_notifications import (
    PushNotification,
    PushNotificationParser,
)
from mailsync.application.services.rate_limiter import RateLimiter
from mailsync.application.services.sync_executor import SyncExecutor
from mailsync.application.services.sync_scheduler import SyncScheduler
from mailsync.application.services.watch_manager import WatchManager

__all__ = [
    "BatchItemResult",
    "BatchOptions",
    "BatchProcessor",
    "BatchStats",
    "CredentialService",
    "ErrorHandler",
    "HistorySync",
    "MessageIngestor",
    "MigrationManager",
    "NullMessageProcessor",
    "PerformanceMonitor",
    "PushNotification",
    "PushNotificationParser",
    "RateLimiter",
    "RetryOptions",
    "SyncExecutor",
    "SyncScheduler",
    "WatchManager",
]
