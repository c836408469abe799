"""Infrastructure services: wiring of the sync engine."""

from mailsync.infrastructure.services.sync_factory import (
    SyncRuntime,
    SyncServices,
    build_runtime,
    build_sync_services,
)

__all__ = ["SyncRuntime", "SyncServices", "build_runtime", "build_sync_services"]
