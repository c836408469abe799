"""Run sync engine jobs outside the HTTP surface (cron, manual operations).

Usage:
    uv run python -m scripts.run_sync_jobs auto-sync
    uv run python -m scripts.run_sync_jobs renew-watches
    uv run python -m scripts.run_sync_jobs migrate [connection_id]
    uv run python -m scripts.run_sync_jobs rollback
    uv run python -m scripts.run_sync_jobs status
Requires Postgres (DATABASE_URL) and Google OAuth client settings.
"""

import asyncio
import sys

import httpx

import mailsync.infrastructure.persistence.database as database
from mailsync.core.config import get_settings
from mailsync.infrastructure.services.sync_factory import (
    SyncRuntime,
    SyncServices,
    build_runtime,
    build_sync_services,
)
from mailsync.shared.telemetry.logging import setup_logging

COMMANDS = ("auto-sync", "renew-watches", "migrate", "rollback", "status")


async def _auto_sync(services: SyncServices) -> None:
    outcomes = await services.scheduler.run_due_auto_syncs()
    for o in outcomes:
        status = "ok" if o.result.success else "; ".join(o.result.errors)
        print(f"{o.email_address}: synced {o.result.emails_synced} ({status})")
    print(f"Done. Connections synced: {len(outcomes)}")


async def _renew_watches(services: SyncServices) -> None:
    sweep = await services.scheduler.renew_expiring_watches()
    for r in sweep.results:
        if not r.success:
            print(f"Renewal failed for {r.connection_id}: {r.error}", file=sys.stderr)
    print(f"Done. Renewed: {sweep.renewed}, failed: {sweep.failed}")


async def _migrate(services: SyncServices, connection_id: str | None) -> None:
    if connection_id:
        single = await services.migration_manager.migrate_connection(connection_id)
        print(f"{connection_id}: {'ok' if single.success else single.error}")
        return
    result = await services.migration_manager.migrate_all_connections()
    for e in result.errors:
        print(f"{e['connection_id']}: {e['error']}", file=sys.stderr)
    print(
        f"Done. {result.watches_setup}/{result.total_connections} watches set up, "
        f"{result.failed} failed"
    )


async def _run(command: str, runtime: SyncRuntime, arg: str | None) -> None:
    async with database.AsyncSessionLocal() as session:
        services = build_sync_services(runtime, session)
        if command == "auto-sync":
            await _auto_sync(services)
        elif command == "renew-watches":
            await _renew_watches(services)
        elif command == "migrate":
            await _migrate(services, arg)
        elif command == "rollback":
            rollback = await services.migration_manager.rollback_migration()
            print(f"Done. Watches disabled: {rollback.disabled}")
        else:
            status = await services.migration_manager.get_migration_status()
            print(
                f"{status.watch_enabled}/{status.total_connections} connections on push "
                f"({status.percentage_migrated}%)"
            )
        await session.commit()


async def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print(f"Usage: python -m scripts.run_sync_jobs {{{'|'.join(COMMANDS)}}}", file=sys.stderr)
        sys.exit(2)
    command = sys.argv[1]
    arg = sys.argv[2] if len(sys.argv) > 2 else None

    setup_logging()
    settings = get_settings()
    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        print("AsyncSessionLocal not configured (set DATABASE_URL)", file=sys.stderr)
        sys.exit(1)

    async with httpx.AsyncClient(timeout=settings.oauth_http_timeout_seconds) as http_client:
        runtime = build_runtime(settings, http_client=http_client)
        try:
            await _run(command, runtime, arg)
        finally:
            await database.dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
