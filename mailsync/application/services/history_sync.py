"""Delta sync from a persisted history cursor.

Lists messageAdded changes after the cursor, stores and processes the unseen
messages, then advances the cursor on both the connection and its watch
subscription. When the provider can no longer resolve the cursor the
connection falls back to a full sync, which also establishes a new cursor.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from mailsync.application.dtos.connection import ConnectionResult
from mailsync.application.dtos.sync import HistorySyncResult
from mailsync.application.interfaces.repositories import IConnectionRepository
from mailsync.application.interfaces.services import IMailboxClient, IMailboxClientFactory
from mailsync.application.services.credential_service import CredentialService
from mailsync.application.services.error_handler import ErrorHandler, get_status_code
from mailsync.application.services.message_ingestion import MessageIngestor
from mailsync.application.services.rate_limiter import RateLimiter
from mailsync.application.services.sync_executor import SyncExecutor
from mailsync.core.constants import RATE_KEY_HISTORY_LIST, rate_key
from mailsync.domain.exceptions import CredentialRefreshError, HistoryGapError
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.telemetry.tracing import add_span_attributes, set_span_error, traced

logger = get_logger(__name__)


def is_history_gap_error(error: BaseException) -> bool:
    """Cursor-unresolvable signal: HistoryGapError, a 404, or "history" in the message.

    The provider contract for this case is loose, so the message match is kept.
    """
    if isinstance(error, HistoryGapError):
        return True
    if get_status_code(error) == 404:
        return True
    return "history" in str(error).lower()


def is_newer_history_id(candidate: str | None, current: str | None) -> bool:
    """Compare cursors numerically when both are numeric."""
    if not candidate:
        return False
    if not current:
        return True
    if candidate.isdigit() and current.isdigit():
        return int(candidate) > int(current)
    return candidate != current


def extract_added_message_ids(records: list[dict[str, Any]]) -> list[str]:
    """Message ids from messagesAdded entries, in record order."""
    ids: list[str] = []
    for record in records:
        for added in record.get("messagesAdded") or []:
            message_id = (added.get("message") or {}).get("id")
            if message_id:
                ids.append(message_id)
    return ids


class HistorySync:
    def __init__(
        self,
        connection_repo: IConnectionRepository,
        credential_service: CredentialService,
        client_factory: IMailboxClientFactory,
        ingestor: MessageIngestor,
        sync_executor: SyncExecutor,
        rate_limiter: RateLimiter,
        error_handler: ErrorHandler,
        refresh_buffer: timedelta = timedelta(minutes=5),
        page_size: int = 100,
        label_id: str | None = "INBOX",
    ) -> None:
        self.connection_repo = connection_repo
        self.credential_service = credential_service
        self.client_factory = client_factory
        self.ingestor = ingestor
        self.sync_executor = sync_executor
        self.rate_limiter = rate_limiter
        self.error_handler = error_handler
        self.refresh_buffer = refresh_buffer
        self.page_size = page_size
        self.label_id = label_id

    @traced("sync.sync_from_history")
    async def sync_from_history(
        self, connection_id: str, start_history_id: str
    ) -> HistorySyncResult:
        """Sync changes after start_history_id. Never raises."""
        connection = await self.connection_repo.get_by_id(connection_id)
        if connection is None:
            return HistorySyncResult(error=f"Connection not found: {connection_id}")

        try:
            access_token = await self.credential_service.ensure_fresh_token(
                connection, self.refresh_buffer
            )
        except CredentialRefreshError as e:
            return HistorySyncResult(error=e.message)
        client = self.client_factory.for_access_token(access_token)

        try:
            message_ids = await self._list_added_message_ids(connection, client, start_history_id)
        except Exception as e:
            if is_history_gap_error(e):
                logger.warning(
                    "History cursor %s unresolvable for connection %s; running full sync",
                    start_history_id,
                    connection_id,
                )
                return await self._fallback_full_sync(connection_id, client)
            error = self.error_handler.format_error(e)
            set_span_error(e)
            logger.error("History list failed for connection %s: %s", connection_id, error)
            return HistorySyncResult(error=error)

        try:
            new_ids = await self.ingestor.filter_new_ids(connection, message_ids)
            ingest = await self.ingestor.fetch_and_store(connection, client, new_ids)
            processing = await self.ingestor.process_stored(ingest.stored)
            latest = await self.error_handler.with_retry(
                client.get_profile_history_id, operation_name="users.getProfile"
            )
            new_history_id = await self._advance_checkpoint(connection, latest)
        except Exception as e:
            error = self.error_handler.format_error(e)
            logger.error("History sync failed for connection %s: %s", connection_id, error)
            set_span_error(e)
            return HistorySyncResult(error=error)

        add_span_attributes(changed=len(message_ids), stored=len(ingest.stored))
        logger.info(
            "History sync for connection %s: %s changed, %s new, %s stored, cursor %s",
            connection_id,
            len(message_ids),
            len(new_ids),
            len(ingest.stored),
            new_history_id,
        )
        return HistorySyncResult(
            success=True,
            new_messages=len(ingest.stored),
            processed_transactions=len(processing.transaction_ids),
            new_history_id=new_history_id,
            email_ids=[ref.message_id for ref in ingest.stored],
            transaction_ids=processing.transaction_ids,
        )

    async def _list_added_message_ids(
        self,
        connection: ConnectionResult,
        client: IMailboxClient,
        start_history_id: str,
    ) -> list[str]:
        key = rate_key(RATE_KEY_HISTORY_LIST, connection.id)
        message_ids: list[str] = []
        page_token: str | None = None
        while True:
            await self.rate_limiter.wait_for_limit(key)
            token = page_token
            page = await self.error_handler.with_retry(
                lambda: client.list_history(
                    start_history_id,
                    page_token=token,
                    label_id=self.label_id,
                    page_size=self.page_size,
                ),
                operation_name="history.list",
            )
            message_ids.extend(extract_added_message_ids(page.records))
            page_token = page.next_page_token
            if not page_token:
                return message_ids

    async def _fallback_full_sync(
        self, connection_id: str, client: IMailboxClient
    ) -> HistorySyncResult:
        # Reload so the executor sees any token refreshed above.
        connection = await self.connection_repo.get_by_id(connection_id)
        if connection is None:
            return HistorySyncResult(error=f"Connection not found: {connection_id}", used_full_sync=True)
        sync = await self.sync_executor.execute_auto_sync(connection)
        add_span_attributes(used_full_sync=True)
        result = HistorySyncResult(
            success=sync.success,
            new_messages=sync.emails_synced,
            processed_transactions=sync.transactions_processed,
            email_ids=sync.email_ids,
            transaction_ids=sync.transaction_ids,
            error="; ".join(sync.errors) or None,
            used_full_sync=True,
        )
        if not sync.success:
            return result
        try:
            latest = await self.error_handler.with_retry(
                client.get_profile_history_id, operation_name="users.getProfile"
            )
            result.new_history_id = await self._advance_checkpoint(connection, latest)
        except Exception as e:
            logger.warning(
                "Full sync for connection %s succeeded but cursor could not be refreshed: %s",
                connection_id,
                self.error_handler.format_error(e),
            )
        return result

    async def _advance_checkpoint(self, connection: ConnectionResult, latest: str) -> str | None:
        """Persist latest if it moves the cursor forward; return the effective cursor."""
        if not is_newer_history_id(latest, connection.last_history_id):
            logger.debug(
                "Cursor for connection %s not advanced (%s <= %s)",
                connection.id,
                latest,
                connection.last_history_id,
            )
            return connection.last_history_id or latest
        await self.connection_repo.save_history_checkpoint(connection.id, latest)
        return latest
