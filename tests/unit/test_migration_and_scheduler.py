"""MigrationManager and SyncScheduler unit tests."""

from datetime import timedelta

import pytest

from mailsync.application.dtos.connection import WatchSubscriptionResult
from mailsync.application.dtos.sync import SyncResult
from mailsync.application.services.sync_scheduler import is_auto_sync_due
from mailsync.domain.exceptions import InvalidGrantError
from tests.fakes import NOW, make_connection


@pytest.mark.asyncio
async def test_migration_continues_past_a_failing_connection(engine) -> None:
    engine.connections.rows["ok"] = make_connection(id="ok", email_address="a@example.com")
    engine.connections.rows["bad"] = make_connection(
        id="bad",
        email_address="b@example.com",
        refresh_token=None,
        access_token=None,
    )

    result = await engine.migration_manager.migrate_all_connections()

    assert not result.success
    assert (result.total_connections, result.watches_setup, result.failed) == (2, 1, 1)
    assert result.errors[0]["connection_id"] == "bad"
    # The successful connection is persisted even though the sweep had a failure.
    assert engine.connections.rows["ok"].watch_enabled
    assert await engine.subscriptions.get_by_connection_id("ok") is not None


@pytest.mark.asyncio
async def test_migration_skips_connections_already_on_push(engine) -> None:
    engine.connections.rows["on"] = make_connection(id="on", watch_enabled=True)
    result = await engine.migration_manager.migrate_all_connections()
    assert result.success and result.total_connections == 0
    assert engine.client.calls == []


@pytest.mark.asyncio
async def test_rollback_and_status(engine) -> None:
    engine.connections.rows["a"] = make_connection(id="a", watch_enabled=True)
    engine.connections.rows["b"] = make_connection(id="b", watch_enabled=True, email_address="b@example.com")
    engine.connections.rows["c"] = make_connection(id="c", email_address="c@example.com")

    status = await engine.migration_manager.get_migration_status()
    assert (status.total_connections, status.watch_enabled, status.watch_disabled) == (3, 2, 1)
    assert status.percentage_migrated == 67

    rollback = await engine.migration_manager.rollback_migration()
    assert rollback.success and rollback.disabled == 2
    assert engine.client.count("stop") == 2
    assert (await engine.migration_manager.get_migration_status()).watch_enabled == 0


@pytest.mark.asyncio
async def test_migrate_single_connection(engine) -> None:
    engine.connections.rows["a"] = make_connection(id="a", token_expiry=NOW - timedelta(minutes=1))
    engine.refresher.result = InvalidGrantError()
    result = await engine.migration_manager.migrate_connection("a")
    assert not result.success and result.connection_id == "a"


def test_auto_sync_due() -> None:
    assert is_auto_sync_due(make_connection(last_auto_sync_at=None), NOW)
    assert is_auto_sync_due(make_connection(last_auto_sync_at=NOW - timedelta(minutes=15)), NOW)
    assert not is_auto_sync_due(make_connection(last_auto_sync_at=NOW - timedelta(minutes=14)), NOW)


@pytest.mark.asyncio
async def test_scheduler_syncs_only_due_connections(engine) -> None:
    engine.connections.rows["due"] = make_connection(id="due")
    engine.connections.rows["fresh"] = make_connection(
        id="fresh", email_address="f@example.com", last_auto_sync_at=NOW - timedelta(minutes=1)
    )
    engine.connections.rows["off"] = make_connection(
        id="off", email_address="o@example.com", auto_sync_enabled=False
    )

    outcomes = await engine.scheduler.run_due_auto_syncs()

    assert [o.connection_id for o in outcomes] == ["due"]
    assert outcomes[0].result.success
    assert engine.connections.rows["due"].last_auto_sync_at == NOW


@pytest.mark.asyncio
async def test_scheduler_renews_expiring_watches(engine) -> None:
    engine.connections.rows["conn-1"] = make_connection(watch_enabled=True)
    engine.subscriptions.rows["sub-1"] = WatchSubscriptionResult(
        id="sub-1",
        user_id="user-1",
        connection_id="conn-1",
        history_id="1",
        expiration=NOW + timedelta(hours=3),
        status="active",
        renewal_attempts=0,
        last_error=None,
        last_renewed_at=None,
    )

    sweep = await engine.scheduler.renew_expiring_watches()

    assert (sweep.renewed, sweep.failed) == (1, 0)
    assert engine.subscriptions.rows["sub-1"].expiration == NOW + timedelta(days=7)


@pytest.mark.asyncio
async def test_scheduler_rolls_back_a_failed_connection_and_commits_the_next(engine, monkeypatch) -> None:
    engine.connections.rows["bad"] = make_connection(id="bad")
    engine.connections.rows["good"] = make_connection(id="good", email_address="g@example.com")

    async def auto_sync(connection):
        if connection.id == "bad":
            raise RuntimeError("deadlock detected")
        return SyncResult(success=True)

    monkeypatch.setattr(engine.sync_executor, "execute_auto_sync", auto_sync)

    outcomes = await engine.scheduler.run_due_auto_syncs()

    assert [o.connection_id for o in outcomes] == ["bad", "good"]
    assert not outcomes[0].result.success
    assert outcomes[0].result.errors == ["deadlock detected"]
    assert outcomes[1].result.success
    assert engine.unit_of_work.events == ["rollback", "commit"]


@pytest.mark.asyncio
async def test_scheduler_commits_after_each_sync(engine) -> None:
    engine.connections.rows["a"] = make_connection(id="a")
    engine.connections.rows["b"] = make_connection(id="b", email_address="b@example.com")

    outcomes = await engine.scheduler.run_due_auto_syncs()

    assert all(o.result.success for o in outcomes)
    assert engine.unit_of_work.commits >= 2
    assert "rollback" not in engine.unit_of_work.events


@pytest.mark.asyncio
async def test_migration_commit_failure_is_isolated_to_its_connection(engine) -> None:
    engine.connections.rows["a"] = make_connection(id="a")
    engine.connections.rows["b"] = make_connection(id="b", email_address="b@example.com")
    engine.unit_of_work.fail_next_commit = RuntimeError("connection reset")

    result = await engine.migration_manager.migrate_all_connections()

    assert (result.total_connections, result.watches_setup, result.failed) == (2, 1, 1)
    assert result.errors == [{"connection_id": "a", "error": "connection reset"}]
    assert engine.unit_of_work.events == ["rollback", "commit"]
