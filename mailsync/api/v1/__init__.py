"""API v1: sync trigger routes."""

from mailsync.api.v1.router import api_router

__all__ = ["api_router"]
