"""Application lifespan: startup and shutdown.

Startup builds the process-wide sync runtime (one RateLimiter and one
PerformanceMonitor shared by every request) around a pooled httpx client for
OAuth refresh, then enables telemetry when configured. Shutdown releases them
in reverse order and disposes the SQL engine.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from mailsync.core.config import Settings, get_settings
from mailsync.infrastructure.persistence import database
from mailsync.infrastructure.services.sync_factory import build_runtime
from mailsync.shared.telemetry.telemetry import TelemetryConfig, get_telemetry, set_telemetry

logger = logging.getLogger(__name__)


def _start_telemetry(app: FastAPI, settings: Settings) -> None:
    telemetry = TelemetryConfig.from_settings(settings)
    provider = telemetry.setup_telemetry(
        exporter_type=settings.telemetry_exporter,
        otlp_endpoint=settings.telemetry_otlp_endpoint,
        sample_rate=settings.telemetry_sample_rate,
    )
    if provider is None:
        return
    set_telemetry(telemetry)
    telemetry.instrument_fastapi(app)
    telemetry.instrument_logging()
    database._ensure_engine()
    if database.engine is not None:
        telemetry.instrument_sqlalchemy(database.engine)


def _stop_telemetry() -> None:
    telemetry = get_telemetry()
    if telemetry is None:
        return
    telemetry.shutdown()
    set_telemetry(None)
    logger.info("Telemetry shut down")


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()

    oauth_http_client = httpx.AsyncClient(timeout=settings.oauth_http_timeout_seconds)
    app.state.oauth_http_client = oauth_http_client
    app.state.sync_runtime = build_runtime(settings, http_client=oauth_http_client)
    if settings.telemetry_enabled:
        _start_telemetry(app, settings)
    logger.info("Sync runtime ready (topic=%s)", settings.pubsub_topic)

    try:
        yield
    finally:
        app.state.sync_runtime = None
        await oauth_http_client.aclose()
        app.state.oauth_http_client = None
        _stop_telemetry()
        await database.dispose_engine()
