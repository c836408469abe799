"""Provider-neutral shapes returned by the mailbox and credential ports."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class RefreshedCredential:
    """Result of a refresh-token grant. refresh_token is set only when the provider rotated it."""

    access_token: str
    expires_at: datetime
    refresh_token: str | None = None


@dataclass(frozen=True)
class MessageListPage:
    """One page of message ids matching a search query."""

    message_ids: list[str]
    next_page_token: str | None = None
    result_size_estimate: int | None = None


@dataclass(frozen=True)
class HistoryPage:
    """One page of change-log records after a start cursor.

    records are the provider's raw history entries; history_id is the
    mailbox cursor reported with the page, when present.
    """

    records: list[dict[str, Any]]
    next_page_token: str | None = None
    history_id: str | None = None


@dataclass(frozen=True)
class WatchRegistration:
    """Cursor and expiry returned when a push watch is (re)registered."""

    history_id: str
    expiration: datetime


@dataclass(frozen=True)
class FetchedMessage:
    """A full message, already decoded from the provider's wire format."""

    message_id: str
    thread_id: str | None
    from_address: str | None
    to_addresses: list[str]
    subject: str | None
    snippet: str | None
    internal_date: datetime | None
    plain_body: str | None
    label_ids: list[str] = field(default_factory=list)
