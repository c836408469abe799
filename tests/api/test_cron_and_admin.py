"""Scheduler and admin routes: bearer secret, sweeps, watch and migration management."""

from dataclasses import replace
from datetime import timedelta

import pytest
from httpx import AsyncClient

from mailsync.core.config import get_settings
from tests.fakes import NOW, make_connection


async def test_missing_or_wrong_secret_returns_401(client: AsyncClient) -> None:
    assert (await client.post("/api/v1/cron/auto-sync")).status_code == 401
    response = await client.post(
        "/api/v1/cron/auto-sync", headers={"Authorization": "Bearer nope"}
    )
    assert response.status_code == 401


async def test_unconfigured_secret_returns_503(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.delenv("CRON_SECRET", raising=False)
    get_settings.cache_clear()
    response = await client.get(
        "/api/v1/migration/status", headers={"Authorization": "Bearer anything"}
    )
    assert response.status_code == 503
    assert "not configured" in response.json()["message"].lower()


async def test_auto_sync_sweep(client: AsyncClient, engine, cron_headers) -> None:
    engine.connections.rows["conn-1"] = make_connection()
    engine.client.message_ids = ["m1"]

    response = await client.post("/api/v1/cron/auto-sync", headers=cron_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["connections_synced"] == 1
    result = body["results"][0]
    assert result["connection_id"] == "conn-1"
    assert result["success"] and result["emails_synced"] == 1


async def test_watch_lifecycle_routes(client: AsyncClient, engine, cron_headers) -> None:
    engine.connections.rows["conn-1"] = make_connection()

    assert (await client.get("/api/v1/watch/conn-1", headers=cron_headers)).status_code == 404

    setup = await client.post("/api/v1/watch/conn-1/setup", headers=cron_headers)
    assert setup.status_code == 200 and setup.json()["success"]

    status = await client.get("/api/v1/watch/conn-1", headers=cron_headers)
    assert status.status_code == 200
    assert status.json()["status"] == "active"
    assert status.json()["history_id"] == "4000"

    stop = await client.post("/api/v1/watch/conn-1/stop", headers=cron_headers)
    assert stop.json() == {
        "connection_id": "conn-1",
        "success": True,
        "already_stopped": False,
        "error": None,
    }


async def test_watch_renewal_sweep(client: AsyncClient, engine, cron_headers) -> None:
    engine.connections.rows["conn-1"] = make_connection()
    await engine.watch_manager.setup_watch("conn-1")
    sub = await engine.subscriptions.get_by_connection_id("conn-1")
    engine.subscriptions.rows[sub.id] = replace(sub, expiration=NOW + timedelta(hours=1))

    response = await client.post("/api/v1/cron/watch-renewal", headers=cron_headers)

    assert response.status_code == 200
    assert response.json()["renewed"] == 1


@pytest.mark.parametrize("fail_second", [False, True])
async def test_migration_routes(client: AsyncClient, engine, cron_headers, fail_second) -> None:
    engine.connections.rows["a"] = make_connection(id="a")
    engine.connections.rows["b"] = make_connection(
        id="b",
        email_address="b@example.com",
        access_token=None if fail_second else "tok",
        refresh_token=None if fail_second else "r",
    )

    response = await client.post("/api/v1/migration", headers=cron_headers)
    body = response.json()
    assert body["success"] is not fail_second
    assert body["watches_setup"] == (1 if fail_second else 2)
    assert [e["connection_id"] for e in body["errors"]] == (["b"] if fail_second else [])

    status = (await client.get("/api/v1/migration/status", headers=cron_headers)).json()
    assert status["watch_enabled"] == body["watches_setup"]

    rollback = (await client.post("/api/v1/migration/rollback", headers=cron_headers)).json()
    assert rollback == {"success": True, "disabled": body["watches_setup"]}


async def test_performance_metrics(client: AsyncClient, engine, cron_headers) -> None:
    engine.connections.rows["conn-1"] = make_connection()
    await client.post("/api/v1/migration/connections/conn-1", headers=cron_headers)
    await client.post("/api/v1/migration/connections/missing", headers=cron_headers)

    response = await client.get("/api/v1/metrics/performance", headers=cron_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["operations"]["watch-setup"]["total"] == 2
    assert body["operations"]["watch-setup"]["failed"] == 1
    assert len(body["recent_errors"]) == 1
