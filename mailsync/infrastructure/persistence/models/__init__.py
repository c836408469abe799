"""Persistence models: ORM entities and mixins."""

from mailsync.infrastructure.persistence.models.connection import MailboxConnection
from mailsync.infrastructure.persistence.models.email_message import EmailMessage
from mailsync.infrastructure.persistence.models.mixins import (
    CuidMixin,
    SyncModel,
    TimestampMixin,
)
from mailsync.infrastructure.persistence.models.watch_subscription import WatchSubscription

__all__ = [
    "CuidMixin",
    "EmailMessage",
    "MailboxConnection",
    "SyncModel",
    "TimestampMixin",
    "WatchSubscription",
]
