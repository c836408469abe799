"""Application interfaces (ports)."""

from mailsync.application.interfaces.repositories import (
    IConnectionRepository,
    IMessageStore,
    IUnitOfWork,
    IWatchSubscriptionRepository,
)
from mailsync.application.interfaces.services import (
    ICredentialRefresher,
    IMailboxClient,
    IMailboxClientFactory,
    IMessageProcessor,
)

__all__ = [
    "IConnectionRepository",
    "ICredentialRefresher",
    "IMailboxClient",
    "IMailboxClientFactory",
    "IMessageProcessor",
    "IMessageStore",
    "IUnitOfWork",
    "IWatchSubscriptionRepository",
]
