"""Shared fetch-and-store for history and full syncs.

Fetches full messages through the BatchProcessor (each call waits on the
connection's rate-limit key and is retried), stores them ignoring duplicates,
then hands newly stored rows to the message processor one at a time.
"""

from __future__ import annotations

from mailsync.application.dtos.connection import ConnectionResult
from mailsync.application.dtos.message import StoredMessageCreate, StoredMessageRef
from mailsync.application.dtos.provider import FetchedMessage
from mailsync.application.dtos.sync import IngestResult, ProcessingResult
from mailsync.application.interfaces.repositories import IMessageStore, IUnitOfWork
from mailsync.application.interfaces.services import IMailboxClient, IMessageProcessor
from mailsync.application.services.batch_processor import BatchOptions, BatchProcessor
from mailsync.application.services.error_handler import ErrorHandler, RetryOptions
from mailsync.application.services.rate_limiter import RateLimiter
from mailsync.core.constants import RATE_KEY_MESSAGES_GET, rate_key
from mailsync.domain.enums import MessageStatus
from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def unique_in_order(message_ids: list[str]) -> list[str]:
    """Drop repeated ids, keeping first occurrence order."""
    return list(dict.fromkeys(message_ids))


class MessageIngestor:
    def __init__(
        self,
        message_store: IMessageStore,
        processor: IMessageProcessor,
        batch_processor: BatchProcessor,
        rate_limiter: RateLimiter,
        error_handler: ErrorHandler,
        unit_of_work: IUnitOfWork,
        batch_options: BatchOptions | None = None,
        retry_options: RetryOptions | None = None,
    ) -> None:
        self.message_store = message_store
        self.unit_of_work = unit_of_work
        self.processor = processor
        self.batch_processor = batch_processor
        self.rate_limiter = rate_limiter
        self.error_handler = error_handler
        self.batch_options = batch_options
        self.retry_options = retry_options

    async def filter_new_ids(
        self, connection: ConnectionResult, message_ids: list[str]
    ) -> list[str]:
        """Ids not yet stored for this user and connection, order preserved."""
        candidates = unique_in_order(message_ids)
        if not candidates:
            return []
        existing = await self.message_store.existing_message_ids(
            connection.user_id, connection.id, candidates
        )
        return [mid for mid in candidates if mid not in existing]

    async def fetch_and_store(
        self,
        connection: ConnectionResult,
        client: IMailboxClient,
        message_ids: list[str],
    ) -> IngestResult:
        """Fetch each id in bounded-concurrency batches and store the successes."""
        outcome = IngestResult()
        if not message_ids:
            return outcome
        key = rate_key(RATE_KEY_MESSAGES_GET, connection.id)

        async def fetch(message_id: str) -> FetchedMessage:
            await self.rate_limiter.wait_for_limit(key)
            return await self.error_handler.with_retry(
                lambda: client.get_message(message_id),
                self.retry_options,
                operation_name="messages.get",
            )

        results = await self.batch_processor.process_batch(
            message_ids, fetch, self.batch_options
        )
        stats = self.batch_processor.get_stats(results)
        logger.info(
            "Fetched %s/%s messages for connection %s (%s failed)",
            stats.successful,
            stats.total,
            connection.id,
            stats.failed,
        )

        # Store sequentially: one session, no concurrent writes.
        for item in results:
            if item.error is not None or item.result is None:
                error = self.error_handler.format_error(item.error) if item.error else "empty"
                logger.warning(
                    "Failed to fetch message %s for connection %s: %s",
                    item.item,
                    connection.id,
                    error,
                )
                outcome.failed.append({"message_id": item.item, "error": error})
                continue
            stored_id = await self.message_store.upsert_ignore_duplicates(
                _to_create(connection, item.result)
            )
            if stored_id is None:
                outcome.duplicates += 1
            else:
                outcome.stored.append(
                    StoredMessageRef(id=stored_id, message_id=item.result.message_id)
                )
        return outcome

    async def process_stored(self, stored: list[StoredMessageRef]) -> ProcessingResult:
        """Run the processor over each stored message, one at a time.

        Stored rows are committed first: the processor reads them by id,
        possibly through its own session.
        """
        outcome = ProcessingResult()
        if not stored:
            return outcome
        await self.unit_of_work.commit()
        for ref in stored:
            try:
                transaction_ids = await self.processor.process_one(ref.id)
            except Exception as e:
                logger.exception("Processing failed for stored message %s", ref.id)
                await self.message_store.set_status(ref.id, MessageStatus.FAILED)
                outcome.errors.append(f"{ref.message_id}: {e}")
                continue
            await self.message_store.set_status(ref.id, MessageStatus.PROCESSED)
            outcome.processed += 1
            outcome.transaction_ids.extend(transaction_ids)
        return outcome


def _to_create(connection: ConnectionResult, message: FetchedMessage) -> StoredMessageCreate:
    return StoredMessageCreate(
        user_id=connection.user_id,
        connection_id=connection.id,
        email_address=connection.email_address,
        message_id=message.message_id,
        thread_id=message.thread_id,
        from_address=message.from_address,
        to_addresses=list(message.to_addresses),
        subject=message.subject,
        snippet=message.snippet,
        internal_date=message.internal_date,
        plain_body=message.plain_body,
        label_ids=list(message.label_ids),
    )
