"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for the sync runtime (built once in the lifespan)
and for sync services bound to a per-request DB session. Routes depend only
on these dependencies, not on infrastructure directly.
"""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mailsync.application.services.performance_monitor import PerformanceMonitor
from mailsync.application.services.push_notifications import PushNotificationParser
from mailsync.core.config import get_settings
from mailsync.infrastructure.persistence.database import get_db_transactional
from mailsync.infrastructure.services.sync_factory import (
    SyncRuntime,
    SyncServices,
    build_sync_services,
)

_bearer = HTTPBearer(auto_error=False)


def get_sync_runtime(request: Request) -> SyncRuntime:
    """Process-wide runtime created by the lifespan."""
    runtime = getattr(request.app.state, "sync_runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Sync runtime is not initialized")
    return runtime


async def get_sync_services(
    runtime: Annotated[SyncRuntime, Depends(get_sync_runtime)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> SyncServices:
    """Sync services bound to the request session; whatever is still pending commits with the request."""
    return build_sync_services(runtime, db)


def get_push_parser(
    runtime: Annotated[SyncRuntime, Depends(get_sync_runtime)],
) -> PushNotificationParser:
    return runtime.push_parser


def get_performance_monitor(
    runtime: Annotated[SyncRuntime, Depends(get_sync_runtime)],
) -> PerformanceMonitor:
    return runtime.performance_monitor


def require_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> None:
    """Scheduler and admin routes require Authorization: Bearer <CRON_SECRET>."""
    settings = get_settings()
    if not settings.cron_secret:
        raise HTTPException(
            status_code=503,
            detail="Scheduler endpoints are not configured (CRON_SECRET is not set).",
        )
    expected = settings.cron_secret.get_secret_value()
    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode(), expected.encode()
    ):
        raise HTTPException(status_code=401, detail="Invalid or missing cron secret")
