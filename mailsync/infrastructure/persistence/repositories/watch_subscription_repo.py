"""Watch subscription repository. Implements IWatchSubscriptionRepository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from mailsync.application.dtos.connection import WatchSubscriptionResult
from mailsync.domain.enums import WatchStatus
from mailsync.infrastructure.persistence.models.watch_subscription import WatchSubscription
from mailsync.infrastructure.persistence.repositories.base import BaseRepository
from mailsync.shared.utils.generators import generate_cuid


def _subscription_to_result(s: WatchSubscription) -> WatchSubscriptionResult:
    return WatchSubscriptionResult(
        id=s.id,
        user_id=s.user_id,
        connection_id=s.connection_id,
        history_id=s.history_id,
        expiration=s.expiration,
        status=s.status,
        renewal_attempts=s.renewal_attempts,
        last_error=s.last_error,
        last_renewed_at=s.last_renewed_at,
    )


class WatchSubscriptionRepository(BaseRepository[WatchSubscription]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WatchSubscription)

    async def get_by_id(self, subscription_id: str) -> WatchSubscriptionResult | None:
        row = await self._get_orm_by_id(subscription_id)
        return _subscription_to_result(row) if row else None

    async def get_by_connection_id(self, connection_id: str) -> WatchSubscriptionResult | None:
        result = await self.db.execute(
            select(WatchSubscription).where(WatchSubscription.connection_id == connection_id)
        )
        row = result.scalar_one_or_none()
        return _subscription_to_result(row) if row else None

    async def upsert_active(
        self,
        user_id: str,
        connection_id: str,
        history_id: str,
        expiration: datetime,
        renewed_at: datetime,
    ) -> WatchSubscriptionResult:
        """INSERT ... ON CONFLICT (connection_id) DO UPDATE to status active."""
        values = {
            "history_id": history_id,
            "expiration": expiration,
            "status": WatchStatus.ACTIVE.value,
            "last_renewed_at": renewed_at,
            "renewal_attempts": 0,
            "last_error": None,
        }
        stmt = pg_insert(WatchSubscription).values(
            id=generate_cuid(), user_id=user_id, connection_id=connection_id, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[WatchSubscription.connection_id],
            set_={**values, "user_id": user_id},
        ).returning(WatchSubscription)
        result = await self.db.execute(
            stmt, execution_options={"populate_existing": True}
        )
        row = result.scalar_one()
        await self.db.flush()
        return _subscription_to_result(row)

    async def set_status(
        self,
        subscription_id: str,
        status: WatchStatus,
        last_error: str | None = None,
        increment_attempts: bool = False,
    ) -> None:
        values: dict[str, object] = {"status": status.value}
        if last_error is not None:
            values["last_error"] = last_error
        if increment_attempts:
            values["renewal_attempts"] = WatchSubscription.renewal_attempts + 1
        await self._update_by_id(subscription_id, **values)

    async def mark_expired_for_connection(self, connection_id: str) -> None:
        await self.db.execute(
            update(WatchSubscription)
            .where(WatchSubscription.connection_id == connection_id)
            .values(status=WatchStatus.EXPIRED.value)
        )
        await self.db.flush()

    async def list_active_expiring_before(self, cutoff: datetime) -> list[WatchSubscriptionResult]:
        result = await self.db.execute(
            select(WatchSubscription)
            .where(
                WatchSubscription.status == WatchStatus.ACTIVE.value,
                WatchSubscription.expiration < cutoff,
            )
            .order_by(WatchSubscription.expiration)
        )
        return [_subscription_to_result(s) for s in result.scalars().all()]
