"""DTOs for stored messages (write-model and references handed to the processor)."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class StoredMessageCreate:
    """Input for storing one fetched message. Repo inserts with ON CONFLICT DO NOTHING."""

    user_id: str
    connection_id: str
    email_address: str
    message_id: str
    thread_id: str | None
    from_address: str | None
    to_addresses: list[str]
    subject: str | None
    snippet: str | None
    internal_date: datetime | None
    plain_body: str | None
    label_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class StoredMessageRef:
    """Identifies a newly stored row: store id plus provider message id."""

    id: str
    message_id: str
