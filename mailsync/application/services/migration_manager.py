"""Bulk moves between polling and push-notification sync."""

from __future__ import annotations

from mailsync.application.dtos.sync import (
    ConnectionMigrationResult,
    MigrationResult,
    MigrationStatus,
    RollbackResult,
    WatchSetupResult,
    WatchStopResult,
)
from mailsync.application.interfaces.repositories import IConnectionRepository, IUnitOfWork
from mailsync.application.services.watch_manager import WatchManager
from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class MigrationManager:
    def __init__(
        self,
        connection_repo: IConnectionRepository,
        watch_manager: WatchManager,
        unit_of_work: IUnitOfWork,
    ) -> None:
        self.connection_repo = connection_repo
        self.watch_manager = watch_manager
        self.unit_of_work = unit_of_work

    async def _setup_and_commit(self, connection_id: str) -> WatchSetupResult:
        try:
            setup = await self.watch_manager.setup_watch(connection_id)
            await self.unit_of_work.commit()
        except Exception as e:
            logger.exception("Watch setup for connection %s was rolled back", connection_id)
            await self.unit_of_work.rollback()
            return WatchSetupResult(success=False, error=str(e))
        return setup

    async def _stop_and_commit(self, connection_id: str) -> WatchStopResult:
        try:
            stopped = await self.watch_manager.stop_watch(connection_id)
            await self.unit_of_work.commit()
        except Exception as e:
            logger.exception("Watch stop for connection %s was rolled back", connection_id)
            await self.unit_of_work.rollback()
            return WatchStopResult(connection_id=connection_id, success=False, error=str(e))
        return stopped

    async def migrate_all_connections(self) -> MigrationResult:
        """Set up watches for every active connection without one, one at a time.

        Each connection is committed before the next starts; a failure for one
        connection is recorded and the sweep continues.
        """
        connections = await self.connection_repo.list_by_watch_enabled(False)
        result = MigrationResult(total_connections=len(connections))
        logger.info("Migrating %s connections to push notifications", len(connections))
        for connection in connections:
            setup = await self._setup_and_commit(connection.id)
            if setup.success:
                result.watches_setup += 1
            else:
                result.failed += 1
                result.errors.append(
                    {"connection_id": connection.id, "error": setup.error or "Unknown error"}
                )
        result.success = result.failed == 0
        logger.info(
            "Migration finished: %s set up, %s failed", result.watches_setup, result.failed
        )
        return result

    async def rollback_migration(self) -> RollbackResult:
        """Stop every enabled watch; connections fall back to polling."""
        connections = await self.connection_repo.list_by_watch_enabled(True, active_only=False)
        disabled = 0
        for connection in connections:
            stopped = await self._stop_and_commit(connection.id)
            if stopped.success:
                disabled += 1
            else:
                logger.warning(
                    "Rollback could not stop watch for connection %s: %s",
                    connection.id,
                    stopped.error,
                )
        logger.info("Rollback disabled %s/%s watches", disabled, len(connections))
        return RollbackResult(success=True, disabled=disabled)

    async def get_migration_status(self) -> MigrationStatus:
        connections = await self.connection_repo.list_all()
        total = len(connections)
        enabled = sum(1 for c in connections if c.watch_enabled)
        return MigrationStatus(
            total_connections=total,
            watch_enabled=enabled,
            watch_disabled=total - enabled,
            percentage_migrated=round(enabled / total * 100) if total else 0,
        )

    async def migrate_connection(self, connection_id: str) -> ConnectionMigrationResult:
        setup = await self.watch_manager.setup_watch(connection_id)
        return ConnectionMigrationResult(
            connection_id=connection_id, success=setup.success, error=setup.error
        )
