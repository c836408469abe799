"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from mailsync.api.v1.dependencies.
"""

from fastapi import APIRouter

from mailsync.api.v1.endpoints import cron, health, metrics, migration, watch, webhooks

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
api_router.include_router(watch.router, prefix="/watch", tags=["watch"])
api_router.include_router(migration.router, prefix="/migration", tags=["migration"])
api_router.include_router(metrics.router, prefix="/metrics", tags=["metrics"])
