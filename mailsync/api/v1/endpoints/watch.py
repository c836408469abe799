"""Per-connection watch management (Bearer CRON_SECRET)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from mailsync.api.v1.dependencies import get_sync_services, require_cron_secret
from mailsync.domain.exceptions import ResourceNotFoundException
from mailsync.infrastructure.services.sync_factory import SyncServices
from mailsync.schemas.sync import WatchSetupResponse, WatchStatusResponse, WatchStopResponse

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post("/{connection_id}/setup", response_model=WatchSetupResponse)
async def setup_watch(
    connection_id: str,
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> WatchSetupResponse:
    result = await services.watch_manager.setup_watch(connection_id)
    return WatchSetupResponse(
        connection_id=connection_id,
        success=result.success,
        history_id=result.history_id,
        expiration=result.expiration,
        error=result.error,
        requires_reconnect=result.requires_reconnect,
    )


@router.post("/{connection_id}/stop", response_model=WatchStopResponse)
async def stop_watch(
    connection_id: str,
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> WatchStopResponse:
    result = await services.watch_manager.stop_watch(connection_id)
    return WatchStopResponse(
        connection_id=result.connection_id,
        success=result.success,
        already_stopped=result.already_stopped,
        error=result.error,
    )


@router.get("/{connection_id}", response_model=WatchStatusResponse)
async def get_watch_status(
    connection_id: str,
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> WatchStatusResponse:
    subscription = await services.watch_manager.get_watch_status(connection_id)
    if subscription is None:
        raise ResourceNotFoundException("watch_subscription", connection_id)
    return WatchStatusResponse.model_validate(subscription)
