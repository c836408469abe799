"""Initial schema: mailbox connections, watch subscriptions, email messages

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create sync tables."""
    op.create_table(
        "mailbox_connection",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("email_address", sa.String(), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("watch_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("watch_setup_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_watch_error", sa.Text(), nullable=True),
        sa.Column("auto_sync_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auto_sync_interval_minutes", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("last_auto_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_history_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'invalid')", name="mailbox_connection_status_check"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_mailbox_connection_user_id"), "mailbox_connection", ["user_id"])
    op.create_index(
        op.f("ix_mailbox_connection_email_address"), "mailbox_connection", ["email_address"]
    )
    op.create_index(op.f("ix_mailbox_connection_status"), "mailbox_connection", ["status"])
    op.create_index(
        op.f("ix_mailbox_connection_watch_enabled"), "mailbox_connection", ["watch_enabled"]
    )

    op.create_table(
        "watch_subscription",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("connection_id", sa.String(), nullable=False),
        sa.Column("history_id", sa.String(length=64), nullable=True),
        sa.Column("expiration", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("renewal_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_renewed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'renewing', 'failed', 'expired')",
            name="watch_subscription_status_check",
        ),
        sa.ForeignKeyConstraint(
            ["connection_id"], ["mailbox_connection.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("connection_id"),
    )
    op.create_index(op.f("ix_watch_subscription_user_id"), "watch_subscription", ["user_id"])
    op.create_index(
        op.f("ix_watch_subscription_expiration"), "watch_subscription", ["expiration"]
    )
    op.create_index(op.f("ix_watch_subscription_status"), "watch_subscription", ["status"])

    op.create_table(
        "email_message",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("connection_id", sa.String(), nullable=False),
        sa.Column("email_address", sa.String(), nullable=False),
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("thread_id", sa.String(), nullable=True),
        sa.Column("from_address", sa.Text(), nullable=True),
        sa.Column("to_addresses", sa.JSON(), nullable=True),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("internal_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("plain_body", sa.Text(), nullable=True),
        sa.Column("label_ids", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="fetched"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('fetched', 'processed', 'failed')", name="email_message_status_check"
        ),
        sa.ForeignKeyConstraint(
            ["connection_id"], ["mailbox_connection.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "connection_id",
            "message_id",
            name="uq_email_message_user_connection_message",
        ),
    )
    op.create_index(
        op.f("ix_email_message_connection_id"), "email_message", ["connection_id"]
    )
    op.create_index(
        "ix_email_message_user_status_date",
        "email_message",
        ["user_id", "status", "internal_date"],
    )


def downgrade() -> None:
    """Drop sync tables."""
    op.drop_index("ix_email_message_user_status_date", table_name="email_message")
    op.drop_index(op.f("ix_email_message_connection_id"), table_name="email_message")
    op.drop_table("email_message")
    op.drop_index(op.f("ix_watch_subscription_status"), table_name="watch_subscription")
    op.drop_index(op.f("ix_watch_subscription_expiration"), table_name="watch_subscription")
    op.drop_index(op.f("ix_watch_subscription_user_id"), table_name="watch_subscription")
    op.drop_table("watch_subscription")
    op.drop_index(op.f("ix_mailbox_connection_watch_enabled"), table_name="mailbox_connection")
    op.drop_index(op.f("ix_mailbox_connection_status"), table_name="mailbox_connection")
    op.drop_index(op.f("ix_mailbox_connection_email_address"), table_name="mailbox_connection")
    op.drop_index(op.f("ix_mailbox_connection_user_id"), table_name="mailbox_connection")
    op.drop_table("mailbox_connection")
