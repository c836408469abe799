"""MailboxConnection ORM model. A user's linked Gmail account, its OAuth tokens and sync state."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mailsync.domain.enums import ConnectionStatus
from mailsync.infrastructure.persistence.database import Base
from mailsync.infrastructure.persistence.models.mixins import SyncModel


class MailboxConnection(SyncModel, Base):
    """Linked mailbox. Table: mailbox_connection. Never deleted by the sync engine."""

    __tablename__ = "mailbox_connection"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    email_address: Mapped[str] = mapped_column(String, nullable=False, index=True)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=ConnectionStatus.ACTIVE.value, index=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    watch_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    watch_setup_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_watch_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_sync_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_sync_interval_minutes: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    last_auto_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_history_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
