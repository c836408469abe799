"""Full (time-windowed) sync for one connection.

Used by scheduled polling and as the fallback when a history cursor can no
longer be resolved. The window starts a little before the newest processed
message so late-arriving mail is not skipped; store uniqueness makes the
overlap harmless.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from mailsync.application.dtos.connection import ConnectionResult
from mailsync.application.dtos.sync import SyncResult
from mailsync.application.interfaces.repositories import IConnectionRepository, IMessageStore
from mailsync.application.interfaces.services import IMailboxClientFactory
from mailsync.application.services.credential_service import CredentialService
from mailsync.application.services.error_handler import ErrorHandler
from mailsync.application.services.message_ingestion import MessageIngestor
from mailsync.application.services.rate_limiter import RateLimiter
from mailsync.core.constants import RATE_KEY_MESSAGES_LIST, rate_key
from mailsync.domain.exceptions import CredentialRefreshError, InvalidGrantError
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.telemetry.tracing import add_span_attributes, set_span_error, traced
from mailsync.shared.utils.datetime import ensure_utc, to_epoch_seconds, utc_now

logger = get_logger(__name__)


class SyncExecutor:
    def __init__(
        self,
        connection_repo: IConnectionRepository,
        message_store: IMessageStore,
        credential_service: CredentialService,
        client_factory: IMailboxClientFactory,
        ingestor: MessageIngestor,
        rate_limiter: RateLimiter,
        error_handler: ErrorHandler,
        refresh_buffer: timedelta = timedelta(minutes=5),
        window_overlap: timedelta = timedelta(minutes=10),
        default_lookback: timedelta = timedelta(days=7),
        page_size: int = 50,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.connection_repo = connection_repo
        self.message_store = message_store
        self.credential_service = credential_service
        self.client_factory = client_factory
        self.ingestor = ingestor
        self.rate_limiter = rate_limiter
        self.error_handler = error_handler
        self.refresh_buffer = refresh_buffer
        self.window_overlap = window_overlap
        self.default_lookback = default_lookback
        self.page_size = page_size
        self._clock = clock

    async def compute_window_start(self, connection: ConnectionResult) -> datetime:
        """Newest processed message minus the overlap, else now minus the lookback."""
        latest = await self.message_store.latest_processed_internal_date(
            connection.user_id, connection.id
        )
        if latest is not None:
            return ensure_utc(latest) - self.window_overlap
        return self._clock() - self.default_lookback

    @traced("sync.execute_auto_sync")
    async def execute_auto_sync(self, connection: ConnectionResult) -> SyncResult:
        """Run one full sync pass. Never raises; failures are reported on the result."""
        result = SyncResult()
        result.refreshed_credentials = self.credential_service.needs_refresh(
            connection, self.refresh_buffer
        )
        try:
            access_token = await self.credential_service.ensure_fresh_token(
                connection, self.refresh_buffer
            )
        except InvalidGrantError as e:
            result.refreshed_credentials = False
            result.requires_reconnect = True
            result.errors.append(e.message)
            return result
        except CredentialRefreshError as e:
            logger.error("Token refresh failed for connection %s: %s", connection.id, e.message)
            result.refreshed_credentials = False
            result.errors.append(e.message)
            return result

        client = self.client_factory.for_access_token(access_token)
        try:
            since = await self.compute_window_start(connection)
            query = f"after:{to_epoch_seconds(since)}"
            await self.rate_limiter.wait_for_limit(rate_key(RATE_KEY_MESSAGES_LIST, connection.id))
            page = await self.error_handler.with_retry(
                lambda: client.list_messages(query, page_size=self.page_size),
                operation_name="messages.list",
            )
            result.emails_found = len(page.message_ids)

            new_ids = await self.ingestor.filter_new_ids(connection, page.message_ids)
            logger.info(
                "Connection %s: %s messages since %s, %s new",
                connection.id,
                result.emails_found,
                since.isoformat(),
                len(new_ids),
            )
            ingest = await self.ingestor.fetch_and_store(connection, client, new_ids)
            result.emails_synced = len(ingest.stored)
            result.email_ids = [ref.message_id for ref in ingest.stored]
            result.errors.extend(f"{f['message_id']}: {f['error']}" for f in ingest.failed)

            processing = await self.ingestor.process_stored(ingest.stored)
            result.transaction_ids = processing.transaction_ids
            result.transactions_processed = len(processing.transaction_ids)
            result.errors.extend(processing.errors)
            result.success = True
            add_span_attributes(found=result.emails_found, stored=result.emails_synced)
        except Exception as e:
            error = self.error_handler.format_error(e)
            logger.error("Sync failed for connection %s: %s", connection.id, error)
            set_span_error(e)
            result.errors.append(error)
            if self.error_handler.is_rate_limit_error(e) or self.error_handler.is_quota_exceeded_error(e):
                result.retry_after_seconds = self.error_handler.get_retry_delay(e)

        await self.connection_repo.touch_auto_sync(connection.id, self._clock())
        return result
