"""Persistence repositories. Re-exports for dependency injection."""

from mailsync.infrastructure.persistence.repositories.base import BaseRepository
from mailsync.infrastructure.persistence.repositories.connection_repo import (
    ConnectionRepository,
)
from mailsync.infrastructure.persistence.repositories.message_repo import MessageRepository
from mailsync.infrastructure.persistence.repositories.unit_of_work import SqlUnitOfWork
from mailsync.infrastructure.persistence.repositories.watch_subscription_repo import (
    WatchSubscriptionRepository,
)

__all__ = [
    "BaseRepository",
    "ConnectionRepository",
    "MessageRepository",
    "SqlUnitOfWork",
    "WatchSubscriptionRepository",
]
