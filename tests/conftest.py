"""Pytest configuration and fixtures for mailsync.

Services are wired against the in-memory fakes in tests/fakes.py with a fixed
clock and no-op sleeps, so no test touches Postgres, Gmail or wall time.
HTTP tests use mailsync.main:create_app with dependency overrides.
"""

from dataclasses import dataclass
from datetime import timedelta
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from mailsync.api.v1.dependencies import get_sync_runtime, get_sync_services
from mailsync.application.services.batch_processor import BatchOptions, BatchProcessor
from mailsync.application.services.credential_service import CredentialService
from mailsync.application.services.error_handler import ErrorHandler, RetryOptions
from mailsync.application.services.history_sync import HistorySync
from mailsync.application.services.message_ingestion import MessageIngestor
from mailsync.application.services.migration_manager import MigrationManager
from mailsync.application.services.performance_monitor import PerformanceMonitor
from mailsync.application.services.push_notifications import PushNotificationParser
from mailsync.application.services.rate_limiter import RateLimiter
from mailsync.application.services.sync_executor import SyncExecutor
from mailsync.application.services.sync_scheduler import SyncScheduler
from mailsync.application.services.watch_manager import WatchManager
from mailsync.core.config import get_settings
from mailsync.infrastructure.persistence.database import _ensure_engine
from mailsync.main import create_app
from tests.fakes import (
    CRON_SECRET,
    NOW,
    TOPIC,
    WEBHOOK_TOKEN,
    FakeClientFactory,
    FakeClock,
    FakeMailboxClient,
    FakeRefresher,
    InMemoryConnectionRepository,
    InMemoryMessageStore,
    InMemoryWatchSubscriptionRepository,
    RecordingProcessor,
    RecordingUnitOfWork,
)


async def no_sleep(_seconds: float) -> None:
    return None


@dataclass
class Engine:
    """Every service of one wiring, plus the fakes behind them."""

    connections: InMemoryConnectionRepository
    subscriptions: InMemoryWatchSubscriptionRepository
    messages: InMemoryMessageStore
    client: FakeMailboxClient
    client_factory: FakeClientFactory
    refresher: FakeRefresher
    processor: RecordingProcessor
    unit_of_work: RecordingUnitOfWork
    rate_limiter: RateLimiter
    error_handler: ErrorHandler
    performance_monitor: PerformanceMonitor
    credential_service: CredentialService
    ingestor: MessageIngestor
    watch_manager: WatchManager
    sync_executor: SyncExecutor
    history_sync: HistorySync
    migration_manager: MigrationManager
    scheduler: SyncScheduler


def build_engine() -> Engine:
    connections = InMemoryConnectionRepository()
    subscriptions = InMemoryWatchSubscriptionRepository()
    connections.subscriptions = subscriptions
    messages = InMemoryMessageStore()
    client = FakeMailboxClient()
    client_factory = FakeClientFactory(client)
    refresher = FakeRefresher()
    processor = RecordingProcessor()
    unit_of_work = RecordingUnitOfWork()
    clock = FakeClock()
    rate_limiter = RateLimiter(max_requests=50, window_seconds=1.0, clock=clock, sleep=clock.sleep)
    error_handler = ErrorHandler(RetryOptions(max_retries=2), sleep=no_sleep)
    batch_processor = BatchProcessor(BatchOptions(), sleep=no_sleep)
    performance_monitor = PerformanceMonitor()
    credential_service = CredentialService(connections, refresher, clock=lambda: NOW)
    ingestor = MessageIngestor(
        message_store=messages,
        processor=processor,
        batch_processor=batch_processor,
        rate_limiter=rate_limiter,
        error_handler=error_handler,
        unit_of_work=unit_of_work,
    )
    watch_manager = WatchManager(
        connection_repo=connections,
        subscription_repo=subscriptions,
        credential_service=credential_service,
        client_factory=client_factory,
        performance_monitor=performance_monitor,
        error_handler=error_handler,
        topic=TOPIC,
        clock=lambda: NOW,
    )
    sync_executor = SyncExecutor(
        connection_repo=connections,
        message_store=messages,
        credential_service=credential_service,
        client_factory=client_factory,
        ingestor=ingestor,
        rate_limiter=rate_limiter,
        error_handler=error_handler,
        refresh_buffer=timedelta(minutes=5),
        clock=lambda: NOW,
    )
    history_sync = HistorySync(
        connection_repo=connections,
        credential_service=credential_service,
        client_factory=client_factory,
        ingestor=ingestor,
        sync_executor=sync_executor,
        rate_limiter=rate_limiter,
        error_handler=error_handler,
    )
    return Engine(
        connections=connections,
        subscriptions=subscriptions,
        messages=messages,
        client=client,
        client_factory=client_factory,
        refresher=refresher,
        processor=processor,
        unit_of_work=unit_of_work,
        rate_limiter=rate_limiter,
        error_handler=error_handler,
        performance_monitor=performance_monitor,
        credential_service=credential_service,
        ingestor=ingestor,
        watch_manager=watch_manager,
        sync_executor=sync_executor,
        history_sync=history_sync,
        migration_manager=MigrationManager(connections, watch_manager, unit_of_work),
        scheduler=SyncScheduler(
            connections, sync_executor, watch_manager, unit_of_work, clock=lambda: NOW
        ),
    )


@pytest.fixture
def engine() -> Engine:
    """Fresh sync engine over empty in-memory stores."""
    return build_engine()


@pytest.fixture
async def client(engine, monkeypatch) -> AsyncClient:
    """Async HTTP client against a fresh app whose sync services are the in-memory engine."""
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    get_settings.cache_clear()
    app = create_app()
    runtime = SimpleNamespace(
        push_parser=PushNotificationParser(WEBHOOK_TOKEN),
        performance_monitor=engine.performance_monitor,
    )
    services = SimpleNamespace(
        connection_repo=engine.connections,
        subscription_repo=engine.subscriptions,
        message_repo=engine.messages,
        watch_manager=engine.watch_manager,
        sync_executor=engine.sync_executor,
        history_sync=engine.history_sync,
        migration_manager=engine.migration_manager,
        scheduler=engine.scheduler,
    )
    app.dependency_overrides[get_sync_runtime] = lambda: runtime
    app.dependency_overrides[get_sync_services] = lambda: services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    get_settings.cache_clear()


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
async def db_session() -> AsyncSession:
    """Database session for repository tests. Rolls back after test.

    Requires DATABASE_URL and a migrated schema (alembic upgrade head). Skips
    when Postgres is not configured; run without DB via: pytest -m 'not requires_db'.
    """
    _ensure_engine()
    from mailsync.infrastructure.persistence.database import AsyncSessionLocal

    if AsyncSessionLocal is None:
        pytest.skip("Postgres not configured: set DATABASE_URL, then run: alembic upgrade head")
    async with AsyncSessionLocal() as session:
        yield session
        await session.rollback()
