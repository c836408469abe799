"""Stored message repository. Implements IMessageStore over email_message."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from mailsync.application.dtos.message import StoredMessageCreate
from mailsync.domain.enums import MessageStatus
from mailsync.infrastructure.persistence.models.email_message import EmailMessage
from mailsync.infrastructure.persistence.repositories.base import BaseRepository
from mailsync.shared.utils.generators import generate_cuid

# Keep IN (...) lists well under asyncpg's bind parameter limit.
_ID_CHUNK_SIZE = 500


class MessageRepository(BaseRepository[EmailMessage]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, EmailMessage)

    async def existing_message_ids(
        self, user_id: str, connection_id: str, message_ids: list[str]
    ) -> set[str]:
        existing: set[str] = set()
        for start in range(0, len(message_ids), _ID_CHUNK_SIZE):
            chunk = message_ids[start : start + _ID_CHUNK_SIZE]
            result = await self.db.execute(
                select(EmailMessage.message_id).where(
                    EmailMessage.user_id == user_id,
                    EmailMessage.connection_id == connection_id,
                    EmailMessage.message_id.in_(chunk),
                )
            )
            existing.update(result.scalars().all())
        return existing

    async def upsert_ignore_duplicates(self, data: StoredMessageCreate) -> str | None:
        """INSERT ... ON CONFLICT DO NOTHING; returns the new id, or None for a duplicate."""
        stmt = (
            pg_insert(EmailMessage)
            .values(
                id=generate_cuid(),
                user_id=data.user_id,
                connection_id=data.connection_id,
                email_address=data.email_address,
                message_id=data.message_id,
                thread_id=data.thread_id,
                from_address=data.from_address,
                to_addresses=list(data.to_addresses),
                subject=data.subject,
                snippet=data.snippet,
                internal_date=data.internal_date,
                plain_body=data.plain_body,
                label_ids=list(data.label_ids),
                status=MessageStatus.FETCHED.value,
            )
            .on_conflict_do_nothing(
                index_elements=["user_id", "connection_id", "message_id"]
            )
            .returning(EmailMessage.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def latest_processed_internal_date(
        self, user_id: str, connection_id: str | None = None
    ) -> datetime | None:
        stmt = select(func.max(EmailMessage.internal_date)).where(
            EmailMessage.user_id == user_id,
            EmailMessage.status == MessageStatus.PROCESSED.value,
        )
        if connection_id is not None:
            stmt = stmt.where(EmailMessage.connection_id == connection_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def set_status(self, stored_id: str, status: MessageStatus) -> None:
        await self._update_by_id(stored_id, status=status.value)
