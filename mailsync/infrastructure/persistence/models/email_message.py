"""EmailMessage ORM model. Fetched Gmail messages awaiting or done with processing."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mailsync.domain.enums import MessageStatus
from mailsync.infrastructure.persistence.database import Base
from mailsync.infrastructure.persistence.models.mixins import SyncModel


class EmailMessage(SyncModel, Base):
    """Stored message. Table: email_message. Unique per (user_id, connection_id, message_id)."""

    __tablename__ = "email_message"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "connection_id", "message_id", name="uq_email_message_user_connection_message"
        ),
        Index("ix_email_message_user_status_date", "user_id", "status", "internal_date"),
    )

    user_id: Mapped[str] = mapped_column(String, nullable=False)
    connection_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("mailbox_connection.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email_address: Mapped[str] = mapped_column(String, nullable=False)
    message_id: Mapped[str] = mapped_column(String, nullable=False)
    thread_id: Mapped[str | None] = mapped_column(String, nullable=True)
    from_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    to_addresses: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    internal_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    plain_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    label_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=MessageStatus.FETCHED.value
    )
