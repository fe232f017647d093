from __future__ import annotations

import pytest

from flavor_monk.core.config import settings
from flavor_monk.tests.utils import register_and_login


def _stub_snapshot(monkeypatch, payload: dict[str, object]) -> list[bool]:
    calls: list[bool] = []

    async def _snapshot_stub() -> dict[str, object]:
        calls.append(True)
        return payload

    monkeypatch.setattr("flavor_monk.main.store_monitor.snapshot", _snapshot_stub)
    return calls


def _store(*, cooldown: float = 0.0, **counters: object) -> dict[str, object]:
    stats: dict[str, object] = {
        "calls": 0,
        "successes": 0,
        "timeouts": 0,
        "errors": 0,
        "short_circuited": 0,
        "degraded_retrievals": 0,
        "unavailable_retrievals": 0,
        "last_error": None,
        "latency_ms": {},
    }
    stats.update(counters)
    stats["circuit"] = {
        "open": cooldown > 0,
        "cooldown_seconds": cooldown,
        "consecutive_failures": 0,
        "times_opened": 1 if cooldown else 0,
        "backoff_seconds": 5.0,
    }
    return stats


@pytest.mark.asyncio
async def test_health_reports_ok_without_auth(client, monkeypatch):
    calls = _stub_snapshot(monkeypatch, {})

    response = await client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert "stores" not in payload
    assert calls == []


@pytest.mark.asyncio
async def test_health_reports_ok_for_authenticated_users(client, monkeypatch):
    _stub_snapshot(monkeypatch, {})
    await register_and_login(client, prefix="health")

    response = await client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["stores"]["stores"] == {}
    assert payload["stores"]["issues"] == []


@pytest.mark.asyncio
async def test_health_degrades_when_vector_circuit_open(client, monkeypatch):
    _stub_snapshot(
        monkeypatch,
        {
            "vector": _store(
                cooldown=4.5,
                calls=3,
                timeouts=2,
                errors=1,
                short_circuited=1,
                degraded_retrievals=3,
                last_error="TimeoutError",
                latency_ms={"query_similar": 3001.2},
            )
        },
    )
    await register_and_login(client, prefix="health")

    response = await client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "degraded"
    telemetry = payload["stores"]
    vector = telemetry["stores"]["vector"]
    assert vector["state"] == "degraded"
    assert vector["circuit_open"] is True
    assert vector["failure_total"] == 3
    assert vector["degraded_retrievals"] == 3
    reasons = {issue["reason"] for issue in telemetry["issues"]}
    assert reasons == {"circuit_open", "last_error", "repeated_failures"}


@pytest.mark.asyncio
async def test_health_allows_allowlisted_clients_without_auth(client, monkeypatch):
    _stub_snapshot(monkeypatch, {})
    monkeypatch.setattr(settings, "health_allowlist", ["testserver"])

    response = await client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["stores"]["issues"] == []


@pytest.mark.asyncio
async def test_health_ignores_recovered_store(client, monkeypatch):
    _stub_snapshot(
        monkeypatch,
        {
            "relational": _store(calls=4, successes=3, errors=1, latency_ms={"find_recipes": 12.0})
        },
    )
    await register_and_login(client, prefix="health")

    payload = (await client.get("/api/health")).json()
    assert payload["status"] == "ok"
    assert payload["stores"]["stores"]["relational"]["state"] == "ok"
    assert payload["stores"]["stores"]["relational"]["failure_total"] == 1
