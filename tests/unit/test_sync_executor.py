"""SyncExecutor unit tests: full (time-windowed) sync."""

from datetime import timedelta

import pytest

from mailsync.domain.enums import MessageStatus
from mailsync.domain.exceptions import InvalidGrantError, MailboxProviderError
from mailsync.shared.utils.datetime import to_epoch_seconds
from tests.fakes import NOW, make_connection


@pytest.mark.asyncio
async def test_token_expiring_within_buffer_is_refreshed_before_listing(engine) -> None:
    conn = make_connection(token_expiry=NOW + timedelta(minutes=3))
    engine.connections.rows[conn.id] = conn
    engine.client.message_ids = ["m1"]

    result = await engine.sync_executor.execute_auto_sync(conn)

    assert result.success
    assert result.refreshed_credentials
    assert engine.refresher.calls == ["refresh-1"]
    # The client was built with the refreshed token, so listing used it.
    assert engine.client_factory.tokens == ["access-new"]
    assert engine.client.calls[0][0] == "list_messages"


@pytest.mark.asyncio
async def test_only_unseen_messages_are_fetched(engine) -> None:
    """120 listed ids with 30 already stored: exactly 90 fetches and 90 new rows."""
    conn = make_connection()
    engine.connections.rows[conn.id] = conn
    ids = [f"m{i:03d}" for i in range(120)]
    engine.messages.seed(conn, ids[:30])
    engine.client.message_ids = ids

    result = await engine.sync_executor.execute_auto_sync(conn)

    assert result.success
    assert result.emails_found == 120
    assert result.emails_synced == 90
    assert engine.client.count("get_message") == 90
    assert {c[1] for c in engine.client.calls if c[0] == "get_message"} == set(ids[30:])
    assert len(engine.messages.rows) == 120
    assert result.transactions_processed == 90


@pytest.mark.asyncio
async def test_window_starts_before_latest_processed_message(engine) -> None:
    conn = make_connection()
    engine.connections.rows[conn.id] = conn
    latest = NOW - timedelta(hours=2)
    engine.messages.seed(conn, ["old"], internal_date=latest)

    await engine.sync_executor.execute_auto_sync(conn)

    expected = to_epoch_seconds(latest - timedelta(minutes=10))
    assert ("list_messages", f"after:{expected}") in engine.client.calls


@pytest.mark.asyncio
async def test_window_defaults_to_lookback_without_history(engine) -> None:
    conn = make_connection()
    engine.connections.rows[conn.id] = conn
    await engine.sync_executor.execute_auto_sync(conn)
    expected = to_epoch_seconds(NOW - timedelta(days=7))
    assert ("list_messages", f"after:{expected}") in engine.client.calls


@pytest.mark.asyncio
async def test_invalid_grant_requires_reconnect_without_fetching(engine) -> None:
    conn = make_connection(token_expiry=NOW - timedelta(minutes=1))
    engine.connections.rows[conn.id] = conn
    engine.refresher.result = InvalidGrantError()

    result = await engine.sync_executor.execute_auto_sync(conn)

    assert not result.success
    assert result.requires_reconnect
    assert engine.client.calls == []
    assert engine.connections.rows[conn.id].status == "invalid"


@pytest.mark.asyncio
async def test_fetch_failures_are_reported_and_others_still_stored(engine) -> None:
    conn = make_connection()
    engine.connections.rows[conn.id] = conn
    engine.client.message_ids = ["a", "b", "c"]
    engine.client.get_errors["b"] = MailboxProviderError("Not Found", status_code=404)

    result = await engine.sync_executor.execute_auto_sync(conn)

    assert result.success
    assert result.emails_synced == 2
    assert result.errors == ["b: [404] Not Found"]
    assert sorted(engine.messages.message_ids()) == ["a", "c"]


@pytest.mark.asyncio
async def test_processor_failure_marks_message_failed(engine) -> None:
    conn = make_connection()
    engine.connections.rows[conn.id] = conn
    engine.client.message_ids = ["a", "b"]
    engine.processor.fail_for = {"stored-2"}

    result = await engine.sync_executor.execute_auto_sync(conn)

    statuses = {row["data"].message_id: row["status"] for row in engine.messages.rows.values()}
    assert statuses == {"a": MessageStatus.PROCESSED, "b": MessageStatus.FAILED}
    assert result.transactions_processed == 1
    assert len(result.errors) == 1


@pytest.mark.asyncio
async def test_rate_limited_listing_reports_retry_after(engine) -> None:
    conn = make_connection()
    engine.connections.rows[conn.id] = conn
    engine.client.list_error = MailboxProviderError("Too many", status_code=429, retry_after=30)

    result = await engine.sync_executor.execute_auto_sync(conn)

    assert not result.success
    assert result.retry_after_seconds == 30
    assert engine.connections.rows[conn.id].last_auto_sync_at == NOW
