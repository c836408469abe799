"""In-memory stand-ins for repositories and the mailbox provider.

They implement the application-layer protocols so services can be exercised
without Postgres or Gmail.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from itertools import count

from mailsync.application.dtos.connection import ConnectionResult, WatchSubscriptionResult
from mailsync.application.dtos.message import StoredMessageCreate
from mailsync.application.dtos.provider import (
    FetchedMessage,
    HistoryPage,
    MessageListPage,
    RefreshedCredential,
    WatchRegistration,
)
from mailsync.domain.enums import ConnectionStatus, MessageStatus, WatchStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
TOPIC = "projects/test-project/topics/gmail-notifications"
CRON_SECRET = "cron-test-secret"
WEBHOOK_TOKEN = "hook-test-token"


def make_connection(**overrides) -> ConnectionResult:
    values = {
        "id": "conn-1",
        "user_id": "user-1",
        "email_address": "owner@example.com",
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "token_expiry": NOW + timedelta(hours=1),
        "status": ConnectionStatus.ACTIVE.value,
        "last_error": None,
        "watch_enabled": False,
        "watch_setup_at": None,
        "last_watch_error": None,
        "auto_sync_enabled": True,
        "auto_sync_interval_minutes": 15,
        "last_auto_sync_at": None,
        "last_history_id": None,
    }
    values.update(overrides)
    return ConnectionResult(**values)


def make_fetched(message_id: str, internal_date: datetime | None = None) -> FetchedMessage:
    return FetchedMessage(
        message_id=message_id,
        thread_id=f"thread-{message_id}",
        from_address="bank@example.com",
        to_addresses=["owner@example.com"],
        subject=f"Receipt {message_id}",
        snippet="You paid",
        internal_date=internal_date or NOW,
        plain_body="You paid 10.00",
        label_ids=["INBOX"],
    )


class InMemoryConnectionRepository:
    def __init__(self, connections: list[ConnectionResult] | None = None) -> None:
        self.rows: dict[str, ConnectionResult] = {c.id: c for c in connections or []}
        self.subscriptions: InMemoryWatchSubscriptionRepository | None = None
        self.checkpoints: list[tuple[str, str]] = []
        self.credential_updates: list[dict] = []

    def _set(self, connection_id: str, **values) -> None:
        self.rows[connection_id] = replace(self.rows[connection_id], **values)

    async def get_by_id(self, connection_id):
        return self.rows.get(connection_id)

    async def get_by_email_address(self, email_address):
        for row in self.rows.values():
            if (
                row.email_address.lower() == email_address.lower()
                and row.status == ConnectionStatus.ACTIVE.value
            ):
                return row
        return None

    async def list_all(self):
        return list(self.rows.values())

    async def list_by_watch_enabled(self, watch_enabled, active_only=True):
        return [
            r
            for r in self.rows.values()
            if r.watch_enabled == watch_enabled
            and (not active_only or r.status == ConnectionStatus.ACTIVE.value)
        ]

    async def list_auto_sync_enabled(self):
        return [
            r
            for r in self.rows.values()
            if r.auto_sync_enabled and r.status == ConnectionStatus.ACTIVE.value
        ]

    async def update_credentials(self, connection_id, access_token, token_expiry, refresh_token=None):
        self.credential_updates.append(
            {"access_token": access_token, "token_expiry": token_expiry, "refresh_token": refresh_token}
        )
        values = {"access_token": access_token, "token_expiry": token_expiry}
        if refresh_token:
            values["refresh_token"] = refresh_token
        self._set(connection_id, **values)

    async def reset_credentials(self, connection_id, error):
        self._set(
            connection_id,
            status=ConnectionStatus.INVALID.value,
            access_token=None,
            refresh_token=None,
            token_expiry=None,
            last_error=error,
        )

    async def mark_watch_enabled(self, connection_id, history_id, setup_at):
        self._set(
            connection_id,
            watch_enabled=True,
            watch_setup_at=setup_at,
            last_history_id=history_id,
            last_watch_error=None,
        )

    async def mark_watch_disabled(self, connection_id):
        self._set(connection_id, watch_enabled=False, last_watch_error=None)

    async def set_watch_error(self, connection_id, error):
        if connection_id in self.rows:
            self._set(connection_id, last_watch_error=error)

    async def save_history_checkpoint(self, connection_id, history_id):
        self.checkpoints.append((connection_id, history_id))
        self._set(connection_id, last_history_id=history_id)
        if self.subscriptions is not None:
            sub = await self.subscriptions.get_by_connection_id(connection_id)
            if sub is not None:
                self.subscriptions.rows[sub.id] = replace(sub, history_id=history_id)

    async def touch_auto_sync(self, connection_id, at):
        self._set(connection_id, last_auto_sync_at=at)


class InMemoryWatchSubscriptionRepository:
    def __init__(self, subscriptions: list[WatchSubscriptionResult] | None = None) -> None:
        self.rows: dict[str, WatchSubscriptionResult] = {s.id: s for s in subscriptions or []}
        self._ids = count(1)

    async def get_by_id(self, subscription_id):
        return self.rows.get(subscription_id)

    async def get_by_connection_id(self, connection_id):
        for row in self.rows.values():
            if row.connection_id == connection_id:
                return row
        return None

    async def upsert_active(self, user_id, connection_id, history_id, expiration, renewed_at):
        existing = await self.get_by_connection_id(connection_id)
        row = WatchSubscriptionResult(
            id=existing.id if existing else f"sub-{next(self._ids)}",
            user_id=user_id,
            connection_id=connection_id,
            history_id=history_id,
            expiration=expiration,
            status=WatchStatus.ACTIVE.value,
            renewal_attempts=0,
            last_error=None,
            last_renewed_at=renewed_at,
        )
        self.rows[row.id] = row
        return row

    async def set_status(self, subscription_id, status, last_error=None, increment_attempts=False):
        row = self.rows[subscription_id]
        self.rows[subscription_id] = replace(
            row,
            status=WatchStatus(status).value,
            last_error=last_error if last_error is not None else row.last_error,
            renewal_attempts=row.renewal_attempts + (1 if increment_attempts else 0),
        )

    async def mark_expired_for_connection(self, connection_id):
        row = await self.get_by_connection_id(connection_id)
        if row is not None:
            self.rows[row.id] = replace(row, status=WatchStatus.EXPIRED.value)

    async def list_active_expiring_before(self, cutoff):
        return [
            r
            for r in self.rows.values()
            if r.status == WatchStatus.ACTIVE.value
            and r.expiration is not None
            and r.expiration < cutoff
        ]


class InMemoryMessageStore:
    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self._ids = count(1)

    def _find(self, user_id, connection_id, message_id):
        for stored_id, row in self.rows.items():
            data = row["data"]
            if (data.user_id, data.connection_id, data.message_id) == (
                user_id,
                connection_id,
                message_id,
            ):
                return stored_id
        return None

    def seed(self, connection: ConnectionResult, message_ids, status=MessageStatus.PROCESSED, internal_date=None):
        for mid in message_ids:
            fetched = make_fetched(mid, internal_date)
            stored_id = f"stored-{next(self._ids)}"
            self.rows[stored_id] = {
                "data": StoredMessageCreate(
                    user_id=connection.user_id,
                    connection_id=connection.id,
                    email_address=connection.email_address,
                    message_id=mid,
                    thread_id=fetched.thread_id,
                    from_address=fetched.from_address,
                    to_addresses=fetched.to_addresses,
                    subject=fetched.subject,
                    snippet=fetched.snippet,
                    internal_date=fetched.internal_date,
                    plain_body=fetched.plain_body,
                ),
                "status": status,
            }

    def message_ids(self) -> list[str]:
        return [row["data"].message_id for row in self.rows.values()]

    async def existing_message_ids(self, user_id, connection_id, message_ids):
        return {mid for mid in message_ids if self._find(user_id, connection_id, mid)}

    async def upsert_ignore_duplicates(self, data):
        if self._find(data.user_id, data.connection_id, data.message_id):
            return None
        stored_id = f"stored-{next(self._ids)}"
        self.rows[stored_id] = {"data": data, "status": MessageStatus.FETCHED}
        return stored_id

    async def latest_processed_internal_date(self, user_id, connection_id=None):
        dates = [
            row["data"].internal_date
            for row in self.rows.values()
            if row["status"] == MessageStatus.PROCESSED
            and row["data"].user_id == user_id
            and (connection_id is None or row["data"].connection_id == connection_id)
            and row["data"].internal_date is not None
        ]
        return max(dates) if dates else None

    async def set_status(self, stored_id, status):
        self.rows[stored_id]["status"] = status


class FakeMailboxClient:
    """Scripted provider: each attribute may be set to a value or an exception."""

    def __init__(self) -> None:
        self.message_ids: list[str] = []
        self.history_pages: list[HistoryPage] = []
        self.history_error: Exception | None = None
        self.profile_history_id = "5000"
        self.watch_result: WatchRegistration | Exception = WatchRegistration(
            history_id="4000", expiration=NOW + timedelta(days=7)
        )
        self.get_errors: dict[str, Exception] = {}
        self.list_error: Exception | None = None
        self.calls: list[tuple] = []

    async def list_messages(self, query, page_size=50, page_token=None):
        self.calls.append(("list_messages", query))
        if self.list_error is not None:
            raise self.list_error
        return MessageListPage(message_ids=list(self.message_ids))

    async def get_message(self, message_id):
        self.calls.append(("get_message", message_id))
        if message_id in self.get_errors:
            raise self.get_errors[message_id]
        return make_fetched(message_id)

    async def list_history(self, start_history_id, page_token=None, label_id="INBOX", page_size=100):
        self.calls.append(("list_history", start_history_id, page_token))
        if self.history_error is not None:
            raise self.history_error
        index = int(page_token) if page_token else 0
        return self.history_pages[index]

    async def get_profile_history_id(self):
        self.calls.append(("get_profile",))
        return self.profile_history_id

    async def watch(self, topic, label_ids):
        self.calls.append(("watch", topic, tuple(label_ids)))
        if isinstance(self.watch_result, Exception):
            raise self.watch_result
        return self.watch_result

    async def stop(self):
        self.calls.append(("stop",))

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class FakeClientFactory:
    def __init__(self, client: FakeMailboxClient) -> None:
        self.client = client
        self.tokens: list[str] = []

    def for_access_token(self, access_token):
        self.tokens.append(access_token)
        return self.client


class FakeRefresher:
    def __init__(self, result: RefreshedCredential | Exception | None = None) -> None:
        self.result = result or RefreshedCredential(
            access_token="access-new", expires_at=NOW + timedelta(hours=1)
        )
        self.calls: list[str] = []

    async def refresh(self, refresh_token):
        self.calls.append(refresh_token)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class RecordingProcessor:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.processed: list[str] = []

    async def process_one(self, stored_message_id):
        if stored_message_id in self.fail_for:
            raise RuntimeError("extraction failed")
        self.processed.append(stored_message_id)
        return [f"txn-{stored_message_id}"]


class FakeClock:
    """Monotonic clock advanced by the recorded sleeps."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingUnitOfWork:
    """Records commit points in order; the in-memory stores write through immediately."""

    def __init__(self) -> None:
        self.events: list[str] = []
        self.fail_next_commit: Exception | None = None

    @property
    def commits(self) -> int:
        return self.events.count("commit")

    async def commit(self) -> None:
        if self.fail_next_commit is not None:
            error, self.fail_next_commit = self.fail_next_commit, None
            raise error
        self.events.append("commit")

    async def rollback(self) -> None:
        self.events.append("rollback")
