"""Scheduler triggers: due auto-syncs and watch renewal (Bearer CRON_SECRET)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from mailsync.api.v1.dependencies import get_sync_services, require_cron_secret
from mailsync.infrastructure.services.sync_factory import SyncServices
from mailsync.schemas.sync import (
    AutoSyncRunResponse,
    RenewalSweepResponse,
    SyncResultResponse,
    WatchRenewalResponse,
)

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post("/auto-sync", response_model=AutoSyncRunResponse)
async def run_auto_sync(
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> AutoSyncRunResponse:
    """Run execute_auto_sync for every connection whose interval has elapsed."""
    outcomes = await services.scheduler.run_due_auto_syncs()
    return AutoSyncRunResponse(
        connections_synced=len(outcomes),
        results=[
            SyncResultResponse(
                connection_id=o.connection_id,
                email_address=o.email_address,
                success=o.result.success,
                emails_found=o.result.emails_found,
                emails_synced=o.result.emails_synced,
                transactions_processed=o.result.transactions_processed,
                errors=o.result.errors,
                requires_reconnect=o.result.requires_reconnect,
                retry_after_seconds=o.result.retry_after_seconds,
            )
            for o in outcomes
        ],
    )


@router.post("/watch-renewal", response_model=RenewalSweepResponse)
async def renew_watches(
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> RenewalSweepResponse:
    """Re-register every active watch expiring within the renewal lookahead."""
    sweep = await services.scheduler.renew_expiring_watches()
    return RenewalSweepResponse(
        renewed=sweep.renewed,
        failed=sweep.failed,
        results=[
            WatchRenewalResponse(
                subscription_id=r.subscription_id,
                connection_id=r.connection_id,
                success=r.success,
                error=r.error,
            )
            for r in sweep.results
        ],
    )
