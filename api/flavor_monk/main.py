"""FastAPI application entrypoint and health reporting utilities.

Invariants:
- Health detail is only exposed to authenticated users or allowlisted hosts.
"""

import ipaddress
import logging
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from flavor_monk.api.deps import get_optional_current_user
from flavor_monk.api.router import api_router
from flavor_monk.core.config import settings
from flavor_monk.db.base import Base
from flavor_monk.db.session import engine
from flavor_monk.jobs.schedule_registry import ensure_schedules
from flavor_monk.models.user import User
from flavor_monk.recommendation.observability import store_monitor

logger = logging.getLogger("flavor_monk.main")

REPEATED_FAILURE_THRESHOLD = 3

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def _startup() -> None:
    """Create missing tables and register scheduled jobs."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    ensure_schedules()


def _summarize_stores(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Condense store monitor state into health-friendly telemetry.

    A store is degraded while its circuit is open, while its last call failed,
    or once it has failed ``REPEATED_FAILURE_THRESHOLD`` times.
    """
    issues: list[dict[str, Any]] = []
    stores: dict[str, Any] = {}
    for store, stats in snapshot.items():
        circuit = stats.get("circuit", {})
        circuit_open = bool(circuit.get("open"))
        if circuit_open:
            issues.append(
                {"store": store, "reason": "circuit_open", "cooldown_seconds": circuit.get("cooldown_seconds", 0.0)}
            )
        if stats.get("last_error"):
            issues.append({"store": store, "reason": "last_error", "error": stats["last_error"]})
        failure_total = int(stats.get("timeouts") or 0) + int(stats.get("errors") or 0)
        repeated = failure_total >= REPEATED_FAILURE_THRESHOLD
        if repeated:
            issues.append(
                {
                    "store": store,
                    "reason": "repeated_failures",
                    "timeouts": int(stats.get("timeouts") or 0),
                    "errors": int(stats.get("errors") or 0),
                }
            )

        stores[store] = {
            "state": "degraded" if circuit_open or repeated or stats.get("last_error") else "ok",
            "circuit_open": circuit_open,
            "failure_total": failure_total,
            "degraded_retrievals": int(stats.get("degraded_retrievals") or 0),
            "unavailable_retrievals": int(stats.get("unavailable_retrievals") or 0),
            "stats": stats,
        }
    return {"stores": stores, "issues": issues}


def _entry_matches(entry: str, candidate: str) -> bool:
    """Return True if an allowlist entry matches a candidate host/IP."""
    try:
        network = ipaddress.ip_network(entry, strict=False)
        return ipaddress.ip_address(candidate) in network
    except ValueError:
        return entry.casefold() == candidate.casefold()


def _ip_or_host_allowlisted(request: Request) -> bool:
    """Check request client/host headers against the health allowlist."""
    if not settings.health_allowlist:
        return False
    client_candidates: list[str] = []
    if request.client and request.client.host:
        client_candidates.append(request.client.host)
    host_header = request.headers.get("host")
    if host_header:
        client_candidates.append(host_header.split(":")[0])
    for candidate in client_candidates:
        for entry in settings.health_allowlist:
            if entry and _entry_matches(entry, candidate):
                return True
    return False


def _can_view_health_detail(request: Request, current_user: User | None) -> bool:
    if current_user:
        return True
    return _ip_or_host_allowlisted(request)


@app.get("/health", tags=["internal"])
@app.get(f"{settings.api_prefix}/health", tags=["internal"])
async def health(request: Request, current_user: User | None = Depends(get_optional_current_user)) -> dict[str, Any]:
    """Return health status and optionally include recipe store telemetry."""
    if not _can_view_health_detail(request, current_user):
        return {"status": "ok"}

    telemetry = _summarize_stores(await store_monitor.snapshot())
    status = "ok" if not telemetry["issues"] else "degraded"
    return {"status": status, "stores": telemetry}
