"""Bulk migration between polling and push sync (Bearer CRON_SECRET)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from mailsync.api.v1.dependencies import get_sync_services, require_cron_secret
from mailsync.infrastructure.services.sync_factory import SyncServices
from mailsync.schemas.sync import (
    ConnectionMigrationResponse,
    MigrationErrorItem,
    MigrationResponse,
    MigrationStatusResponse,
    RollbackResponse,
)

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post("", response_model=MigrationResponse)
async def migrate_all(
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> MigrationResponse:
    """Set up watches for every active connection still on polling."""
    result = await services.migration_manager.migrate_all_connections()
    return MigrationResponse(
        success=result.success,
        total_connections=result.total_connections,
        watches_setup=result.watches_setup,
        failed=result.failed,
        errors=[MigrationErrorItem(**e) for e in result.errors],
    )


@router.post("/rollback", response_model=RollbackResponse)
async def rollback(
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> RollbackResponse:
    """Stop every enabled watch."""
    result = await services.migration_manager.rollback_migration()
    return RollbackResponse(success=result.success, disabled=result.disabled)


@router.get("/status", response_model=MigrationStatusResponse)
async def migration_status(
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> MigrationStatusResponse:
    return MigrationStatusResponse.model_validate(
        await services.migration_manager.get_migration_status()
    )


@router.post("/connections/{connection_id}", response_model=ConnectionMigrationResponse)
async def migrate_connection(
    connection_id: str,
    services: Annotated[SyncServices, Depends(get_sync_services)],
) -> ConnectionMigrationResponse:
    return ConnectionMigrationResponse.model_validate(
        await services.migration_manager.migrate_connection(connection_id)
    )
