"""Service interfaces (ports) for the application layer.

Protocols define the remote mailbox provider, the OAuth refresh grant and the
downstream message processor consumed by the sync services (DIP).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from mailsync.application.dtos.provider import (
        FetchedMessage,
        HistoryPage,
        MessageListPage,
        RefreshedCredential,
        WatchRegistration,
    )


# Mailbox provider interface
class IMailboxClient(Protocol):
    """Protocol for one authenticated mailbox on the remote provider.

    Implementations raise MailboxProviderError for failed calls and
    HistoryGapError when list_history cannot resolve start_history_id.
    """

    async def list_messages(
        self, query: str, page_size: int = 50, page_token: str | None = None
    ) -> MessageListPage:
        """Return message ids matching a search query (e.g. "after:1700000000")."""

    async def get_message(self, message_id: str) -> FetchedMessage:
        """Return the full message, headers and plain-text body decoded."""

    async def list_history(
        self,
        start_history_id: str,
        page_token: str | None = None,
        label_id: str | None = "INBOX",
        page_size: int = 100,
    ) -> HistoryPage:
        """Return messageAdded change records after start_history_id."""

    async def get_profile_history_id(self) -> str:
        """Return the mailbox's current history cursor."""

    async def watch(self, topic: str, label_ids: list[str]) -> WatchRegistration:
        """Register (or re-register) push notifications to topic."""

    async def stop(self) -> None:
        """Stop push notifications for the mailbox."""


class IMailboxClientFactory(Protocol):
    """Builds a mailbox client bound to an access token."""

    def for_access_token(self, access_token: str) -> IMailboxClient:
        """Return a client authenticated with access_token."""


# Credential refresh interface
class ICredentialRefresher(Protocol):
    """Protocol for the OAuth refresh-token grant."""

    async def refresh(self, refresh_token: str) -> RefreshedCredential:
        """Exchange refresh_token for a new access token.

        Raises InvalidGrantError when the grant was revoked or expired,
        CredentialRefreshError for any other failure.
        """


# Downstream processor interface
class IMessageProcessor(Protocol):
    """Protocol for the extraction pipeline that consumes stored messages.

    Implementations must be idempotent per stored message (upsert by source).
    """

    async def process_one(self, stored_message_id: str) -> list[str]:
        """Process one stored message and return the ids of records it produced."""
