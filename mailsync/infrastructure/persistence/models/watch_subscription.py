"""WatchSubscription ORM model. Gmail push-notification registration per connection."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mailsync.domain.enums import WatchStatus
from mailsync.infrastructure.persistence.database import Base
from mailsync.infrastructure.persistence.models.mixins import SyncModel


class WatchSubscription(SyncModel, Base):
    """Push subscription. Table: watch_subscription. One row per connection (upsert on connection_id)."""

    __tablename__ = "watch_subscription"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    connection_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("mailbox_connection.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    history_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    expiration: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=WatchStatus.PENDING.value, index=True
    )
    renewal_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_renewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
