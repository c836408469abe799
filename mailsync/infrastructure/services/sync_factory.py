"""Builds the sync engine from Settings: process-wide runtime plus per-session services.

The runtime (rate limiter, performance monitor, provider clients) is created
once per process; services are rebuilt around each database session so
repositories never share a session across requests or script runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from mailsync.application.interfaces.services import (
    ICredentialRefresher,
    IMailboxClientFactory,
    IMessageProcessor,
)
from mailsync.application.services.batch_processor import BatchOptions, BatchProcessor
from mailsync.application.services.credential_service import CredentialService
from mailsync.application.services.error_handler import ErrorHandler, RetryOptions
from mailsync.application.services.history_sync import HistorySync
from mailsync.application.services.message_ingestion import MessageIngestor
from mailsync.application.services.message_processor import NullMessageProcessor
from mailsync.application.services.migration_manager import MigrationManager
from mailsync.application.services.performance_monitor import PerformanceMonitor
from mailsync.application.services.push_notifications import PushNotificationParser
from mailsync.application.services.rate_limiter import RateLimiter
from mailsync.application.services.sync_executor import SyncExecutor
from mailsync.application.services.sync_scheduler import SyncScheduler
from mailsync.application.services.watch_manager import WatchManager
from mailsync.core.config import Settings
from mailsync.infrastructure.external.gmail import GmailClientFactory, GoogleCredentialRefresher
from mailsync.infrastructure.persistence.repositories import (
    ConnectionRepository,
    MessageRepository,
    SqlUnitOfWork,
    WatchSubscriptionRepository,
)


@dataclass
class SyncRuntime:
    """Process-wide collaborators shared by every sync pass."""

    settings: Settings
    rate_limiter: RateLimiter
    error_handler: ErrorHandler
    batch_processor: BatchProcessor
    performance_monitor: PerformanceMonitor
    push_parser: PushNotificationParser
    client_factory: IMailboxClientFactory
    credential_refresher: ICredentialRefresher
    message_processor: IMessageProcessor


@dataclass
class SyncServices:
    """Services bound to one database session."""

    connection_repo: ConnectionRepository
    subscription_repo: WatchSubscriptionRepository
    message_repo: MessageRepository
    watch_manager: WatchManager
    sync_executor: SyncExecutor
    history_sync: HistorySync
    migration_manager: MigrationManager
    scheduler: SyncScheduler


def build_runtime(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
    message_processor: IMessageProcessor | None = None,
) -> SyncRuntime:
    webhook_token = (
        settings.pubsub_webhook_token.get_secret_value()
        if settings.pubsub_webhook_token
        else None
    )
    return SyncRuntime(
        settings=settings,
        rate_limiter=RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        error_handler=ErrorHandler(
            RetryOptions(
                max_retries=settings.retry_max_retries,
                initial_delay=settings.retry_initial_delay_seconds,
                max_delay=settings.retry_max_delay_seconds,
                backoff_multiplier=settings.retry_backoff_multiplier,
            )
        ),
        batch_processor=BatchProcessor(
            BatchOptions(
                batch_size=settings.batch_size,
                concurrency=settings.batch_concurrency,
                delay_between_batches=settings.batch_delay_seconds,
            )
        ),
        performance_monitor=PerformanceMonitor(max_metrics=settings.performance_max_metrics),
        push_parser=PushNotificationParser(webhook_token),
        client_factory=GmailClientFactory(),
        credential_refresher=GoogleCredentialRefresher(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret.get_secret_value(),
            token_endpoint=settings.google_token_uri,
            http_client=http_client,
            timeout=settings.oauth_http_timeout_seconds,
        ),
        message_processor=message_processor or NullMessageProcessor(),
    )


def build_sync_services(runtime: SyncRuntime, db: AsyncSession) -> SyncServices:
    settings = runtime.settings
    connection_repo = ConnectionRepository(db)
    subscription_repo = WatchSubscriptionRepository(db)
    message_repo = MessageRepository(db)
    unit_of_work = SqlUnitOfWork(db)
    credential_service = CredentialService(connection_repo, runtime.credential_refresher)
    refresh_buffer = timedelta(minutes=settings.token_refresh_buffer_minutes)

    ingestor = MessageIngestor(
        message_store=message_repo,
        processor=runtime.message_processor,
        batch_processor=runtime.batch_processor,
        rate_limiter=runtime.rate_limiter,
        error_handler=runtime.error_handler,
        unit_of_work=unit_of_work,
    )
    watch_manager = WatchManager(
        connection_repo=connection_repo,
        subscription_repo=subscription_repo,
        credential_service=credential_service,
        client_factory=runtime.client_factory,
        performance_monitor=runtime.performance_monitor,
        error_handler=runtime.error_handler,
        topic=settings.pubsub_topic,
        label_ids=settings.watch_labels,
        renewal_lookahead=timedelta(hours=settings.watch_renewal_lookahead_hours),
    )
    sync_executor = SyncExecutor(
        connection_repo=connection_repo,
        message_store=message_repo,
        credential_service=credential_service,
        client_factory=runtime.client_factory,
        ingestor=ingestor,
        rate_limiter=runtime.rate_limiter,
        error_handler=runtime.error_handler,
        refresh_buffer=refresh_buffer,
        window_overlap=timedelta(minutes=settings.sync_window_overlap_minutes),
        default_lookback=timedelta(days=settings.sync_default_lookback_days),
        page_size=settings.sync_page_size,
    )
    history_sync = HistorySync(
        connection_repo=connection_repo,
        credential_service=credential_service,
        client_factory=runtime.client_factory,
        ingestor=ingestor,
        sync_executor=sync_executor,
        rate_limiter=runtime.rate_limiter,
        error_handler=runtime.error_handler,
        refresh_buffer=refresh_buffer,
        page_size=settings.history_page_size,
        label_id=settings.watch_labels[0] if settings.watch_labels else None,
    )
    return SyncServices(
        connection_repo=connection_repo,
        subscription_repo=subscription_repo,
        message_repo=message_repo,
        watch_manager=watch_manager,
        sync_executor=sync_executor,
        history_sync=history_sync,
        migration_manager=MigrationManager(connection_repo, watch_manager, unit_of_work),
        scheduler=SyncScheduler(connection_repo, sync_executor, watch_manager, unit_of_work),
    )
