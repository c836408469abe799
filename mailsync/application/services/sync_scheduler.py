"""Periodic sweeps: due auto-syncs and watch renewals.

Triggered from the cron endpoints or scripts/run_sync_jobs.py; the
scheduler itself keeps no timers.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from mailsync.application.dtos.connection import ConnectionResult
from mailsync.application.dtos.sync import (
    RenewalSweepResult,
    ScheduledSyncOutcome,
    SyncResult,
    WatchRenewalResult,
)
from mailsync.application.interfaces.repositories import IConnectionRepository, IUnitOfWork
from mailsync.application.services.sync_executor import SyncExecutor
from mailsync.application.services.watch_manager import WatchManager
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.utils.datetime import ensure_utc, utc_now

logger = get_logger(__name__)


def is_auto_sync_due(connection: ConnectionResult, now: datetime) -> bool:
    """Due when never synced or the interval has elapsed since last_auto_sync_at."""
    if connection.last_auto_sync_at is None:
        return True
    elapsed = now - ensure_utc(connection.last_auto_sync_at)
    return elapsed >= timedelta(minutes=connection.auto_sync_interval_minutes)


class SyncScheduler:
    """Sweeps commit after every connection, so one failure never undoes the others."""

    def __init__(
        self,
        connection_repo: IConnectionRepository,
        sync_executor: SyncExecutor,
        watch_manager: WatchManager,
        unit_of_work: IUnitOfWork,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.connection_repo = connection_repo
        self.sync_executor = sync_executor
        self.watch_manager = watch_manager
        self.unit_of_work = unit_of_work
        self._clock = clock

    async def run_due_auto_syncs(self, now: datetime | None = None) -> list[ScheduledSyncOutcome]:
        """Run execute_auto_sync for each due connection, sequentially."""
        now = now or self._clock()
        connections = await self.connection_repo.list_auto_sync_enabled()
        due = [c for c in connections if is_auto_sync_due(c, now)]
        logger.info("Auto-sync: %s of %s connections due", len(due), len(connections))
        outcomes: list[ScheduledSyncOutcome] = []
        for connection in due:
            try:
                result = await self.sync_executor.execute_auto_sync(connection)
                await self.unit_of_work.commit()
            except Exception as e:
                logger.exception("Auto-sync for connection %s was rolled back", connection.id)
                await self.unit_of_work.rollback()
                result = SyncResult(success=False, errors=[str(e)])
            outcomes.append(
                ScheduledSyncOutcome(
                    connection_id=connection.id,
                    email_address=connection.email_address,
                    result=result,
                )
            )
        return outcomes

    async def renew_expiring_watches(self, now: datetime | None = None) -> RenewalSweepResult:
        sweep = RenewalSweepResult()
        subscriptions = await self.watch_manager.find_expiring_soon(now)
        logger.info("Watch renewal: %s subscriptions expiring soon", len(subscriptions))
        for subscription in subscriptions:
            try:
                result = await self.watch_manager.register_or_renew(subscription.id)
                await self.unit_of_work.commit()
            except Exception as e:
                logger.exception("Watch renewal for %s was rolled back", subscription.id)
                await self.unit_of_work.rollback()
                result = WatchRenewalResult(
                    subscription_id=subscription.id,
                    connection_id=subscription.connection_id,
                    success=False,
                    error=str(e),
                )
            sweep.results.append(result)
            if result.success:
                sweep.renewed += 1
            else:
                sweep.failed += 1
        return sweep
