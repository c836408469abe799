"""FastAPI application entry point.

Wiring only: logging, lifespan, exception handlers, routers. No business
logic here. See mailsync.core.lifespan and mailsync.core.exception_handlers.

Settings are loaded inside create_app() so that tests can set env (and
optionally clear get_settings cache) before calling create_app().
"""

from fastapi import FastAPI

from mailsync.api.v1 import api_router
from mailsync.core.config import get_settings
from mailsync.core.exception_handlers import register_exception_handlers
from mailsync.core.lifespan import create_lifespan
from mailsync.shared.telemetry.logging import setup_logging


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=create_lifespan,
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
