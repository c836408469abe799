"""Mailbox connection repository. Implements IConnectionRepository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mailsync.application.dtos.connection import ConnectionResult
from mailsync.domain.enums import ConnectionStatus
from mailsync.infrastructure.persistence.models.connection import MailboxConnection
from mailsync.infrastructure.persistence.models.watch_subscription import WatchSubscription
from mailsync.infrastructure.persistence.repositories.base import BaseRepository


def _connection_to_result(c: MailboxConnection) -> ConnectionResult:
    return ConnectionResult(
        id=c.id,
        user_id=c.user_id,
        email_address=c.email_address,
        access_token=c.access_token,
        refresh_token=c.refresh_token,
        token_expiry=c.token_expiry,
        status=c.status,
        last_error=c.last_error,
        watch_enabled=c.watch_enabled,
        watch_setup_at=c.watch_setup_at,
        last_watch_error=c.last_watch_error,
        auto_sync_enabled=c.auto_sync_enabled,
        auto_sync_interval_minutes=c.auto_sync_interval_minutes,
        last_auto_sync_at=c.last_auto_sync_at,
        last_history_id=c.last_history_id,
    )


class ConnectionRepository(BaseRepository[MailboxConnection]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, MailboxConnection)

    async def get_by_id(self, connection_id: str) -> ConnectionResult | None:
        row = await self._get_orm_by_id(connection_id)
        return _connection_to_result(row) if row else None

    async def get_by_email_address(self, email_address: str) -> ConnectionResult | None:
        """Most recently updated active connection for the address (case-insensitive)."""
        result = await self.db.execute(
            select(MailboxConnection)
            .where(
                func.lower(MailboxConnection.email_address) == email_address.strip().lower(),
                MailboxConnection.status == ConnectionStatus.ACTIVE.value,
            )
            .order_by(MailboxConnection.updated_at.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _connection_to_result(row) if row else None

    async def list_all(self) -> list[ConnectionResult]:
        result = await self.db.execute(
            select(MailboxConnection).order_by(MailboxConnection.created_at)
        )
        return [_connection_to_result(c) for c in result.scalars().all()]

    async def list_by_watch_enabled(
        self, watch_enabled: bool, active_only: bool = True
    ) -> list[ConnectionResult]:
        stmt = select(MailboxConnection).where(MailboxConnection.watch_enabled.is_(watch_enabled))
        if active_only:
            stmt = stmt.where(MailboxConnection.status == ConnectionStatus.ACTIVE.value)
        result = await self.db.execute(stmt.order_by(MailboxConnection.created_at))
        return [_connection_to_result(c) for c in result.scalars().all()]

    async def list_auto_sync_enabled(self) -> list[ConnectionResult]:
        result = await self.db.execute(
            select(MailboxConnection)
            .where(
                MailboxConnection.auto_sync_enabled.is_(True),
                MailboxConnection.status == ConnectionStatus.ACTIVE.value,
            )
            .order_by(MailboxConnection.last_auto_sync_at.asc().nulls_first())
        )
        return [_connection_to_result(c) for c in result.scalars().all()]

    async def update_credentials(
        self,
        connection_id: str,
        access_token: str,
        token_expiry: datetime,
        refresh_token: str | None = None,
    ) -> None:
        values: dict[str, object] = {
            "access_token": access_token,
            "token_expiry": token_expiry,
            "last_error": None,
        }
        if refresh_token:
            values["refresh_token"] = refresh_token
        await self._update_by_id(connection_id, **values)

    async def reset_credentials(self, connection_id: str, error: str) -> None:
        await self._update_by_id(
            connection_id,
            status=ConnectionStatus.INVALID.value,
            access_token=None,
            refresh_token=None,
            token_expiry=None,
            last_error=error,
        )

    async def mark_watch_enabled(
        self, connection_id: str, history_id: str, setup_at: datetime
    ) -> None:
        await self._update_by_id(
            connection_id,
            watch_enabled=True,
            watch_setup_at=setup_at,
            last_history_id=history_id,
            last_watch_error=None,
        )

    async def mark_watch_disabled(self, connection_id: str) -> None:
        await self._update_by_id(connection_id, watch_enabled=False, last_watch_error=None)

    async def set_watch_error(self, connection_id: str, error: str) -> None:
        await self._update_by_id(connection_id, last_watch_error=error)

    async def save_history_checkpoint(self, connection_id: str, history_id: str) -> None:
        """Write the cursor to both tables in the session's transaction."""
        await self._update_by_id(connection_id, last_history_id=history_id)
        await self.db.execute(
            update(WatchSubscription)
            .where(WatchSubscription.connection_id == connection_id)
            .values(history_id=history_id)
        )
        await self.db.flush()

    async def touch_auto_sync(self, connection_id: str, at: datetime) -> None:
        await self._update_by_id(connection_id, last_auto_sync_at=at)

    async def create_connection(
        self,
        user_id: str,
        email_address: str,
        access_token: str | None,
        refresh_token: str | None,
        token_expiry: datetime | None,
        auto_sync_interval_minutes: int = 15,
    ) -> ConnectionResult:
        """Create an active connection. Account linking (OAuth consent) happens outside this service."""
        connection = MailboxConnection(
            user_id=user_id,
            email_address=email_address.strip().lower(),
            access_token=access_token,
            refresh_token=refresh_token,
            token_expiry=token_expiry,
            status=ConnectionStatus.ACTIVE.value,
            watch_enabled=False,
            auto_sync_enabled=True,
            auto_sync_interval_minutes=auto_sync_interval_minutes,
        )
        return _connection_to_result(await self.create(connection))
