"""Health of the recipe stores as seen by retrieval.

Every vector or relational call made by the retriever goes through
``StoreMonitor.track``. The monitor counts timeouts apart from other
errors, short-circuits a store after repeated failures, and records each
retrieval that had to be served by one store alone (or by neither).
Events are logged as single-line JSON on the ``flavor_monk.stores`` logger.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Mapping

logger = logging.getLogger("flavor_monk.stores")


class CircuitOpenError(Exception):
    """Raised instead of calling a store whose circuit is open."""


@dataclass
class StoreCircuit:
    """Opens after ``threshold`` consecutive failures; each reopen doubles the cooldown."""

    threshold: int = 3
    base_backoff_seconds: float = 5.0
    max_backoff_seconds: float = 120.0
    consecutive_failures: int = 0
    open_until: float = 0.0
    times_opened: int = 0
    backoff_seconds: float = field(init=False)

    def __post_init__(self) -> None:
        self.backoff_seconds = self.base_backoff_seconds

    @property
    def is_open(self) -> bool:
        return time.monotonic() < self.open_until

    def cooldown_left(self) -> float:
        return max(0.0, self.open_until - time.monotonic())

    def close(self) -> None:
        self.consecutive_failures = 0
        self.open_until = 0.0
        self.backoff_seconds = self.base_backoff_seconds

    def trip(self) -> bool:
        """Count one failure; returns True when it opened the circuit."""
        self.consecutive_failures += 1
        if self.consecutive_failures < self.threshold:
            return False
        self.open_until = time.monotonic() + self.backoff_seconds
        self.consecutive_failures = 0
        self.times_opened += 1
        self.backoff_seconds = min(self.backoff_seconds * 2, self.max_backoff_seconds)
        return True


@dataclass
class StoreStats:
    calls: int = 0
    successes: int = 0
    timeouts: int = 0
    errors: int = 0
    short_circuited: int = 0
    # Retrievals the other store served alone because this one failed.
    degraded_retrievals: int = 0
    # Retrievals where this store and the other one both failed.
    unavailable_retrievals: int = 0
    last_error: str | None = None
    latency_ms: dict[str, float] = field(default_factory=dict)

    @property
    def failures(self) -> int:
        return self.timeouts + self.errors


def _log(level: int, event: str, **fields: Any) -> None:
    logger.log(level, json.dumps({"event": event, **fields}, default=str))


class StoreMonitor:
    """Per-store call outcomes and circuit state, shared by every retriever."""

    def __init__(
        self,
        *,
        circuit_threshold: int = 3,
        base_backoff_seconds: float = 5.0,
        max_backoff_seconds: float = 120.0,
    ) -> None:
        self._circuit_threshold = circuit_threshold
        self._base_backoff_seconds = base_backoff_seconds
        self._max_backoff_seconds = max_backoff_seconds
        self._lock = asyncio.Lock()
        self.reset()

    def reset(self) -> None:
        """Forget all counters and close every circuit."""
        self._stats: defaultdict[str, StoreStats] = defaultdict(StoreStats)
        self._circuits: defaultdict[str, StoreCircuit] = defaultdict(self._new_circuit)

    def _new_circuit(self) -> StoreCircuit:
        return StoreCircuit(
            threshold=self._circuit_threshold,
            base_backoff_seconds=self._base_backoff_seconds,
            max_backoff_seconds=self._max_backoff_seconds,
        )

    def allow_call(self, store: str) -> bool:
        return not self._circuits[store].is_open

    async def track(
        self,
        store: str,
        operation: str,
        func: Callable[[], Awaitable[Any]],
        *,
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Run one store call, counting its outcome against ``store``.

        Raises ``CircuitOpenError`` without calling ``func`` while the circuit
        is open; otherwise re-raises whatever ``func`` raises.
        """
        async with self._lock:
            circuit = self._circuits[store]
            stats = self._stats[store]
            if circuit.is_open:
                stats.short_circuited += 1
                remaining = circuit.cooldown_left()
                _log(
                    logging.WARNING,
                    "store_short_circuited",
                    store=store,
                    operation=operation,
                    cooldown_seconds=round(remaining, 2),
                )
                raise CircuitOpenError(f"{store} circuit open for {remaining:.2f}s")
            stats.calls += 1

        started = time.monotonic()
        try:
            result = await func()
        except Exception as exc:  # noqa: BLE001
            elapsed_ms = round((time.monotonic() - started) * 1000, 2)
            timed_out = isinstance(exc, (asyncio.TimeoutError, TimeoutError))
            error = str(exc) or exc.__class__.__name__
            async with self._lock:
                stats = self._stats[store]
                if timed_out:
                    stats.timeouts += 1
                else:
                    stats.errors += 1
                stats.last_error = error
                stats.latency_ms[operation] = elapsed_ms
                opened = self._circuits[store].trip()
            _log(
                logging.WARNING,
                "store_timeout" if timed_out else "store_error",
                store=store,
                operation=operation,
                error=error,
                latency_ms=elapsed_ms,
                circuit_opened=opened,
                context=context or {},
            )
            raise

        elapsed_ms = round((time.monotonic() - started) * 1000, 2)
        async with self._lock:
            stats = self._stats[store]
            stats.successes += 1
            stats.last_error = None
            stats.latency_ms[operation] = elapsed_ms
            self._circuits[store].close()
        _log(logging.DEBUG, "store_ok", store=store, operation=operation, latency_ms=elapsed_ms)
        return result

    def record_retrieval(self, failures: Mapping[str, str], *, user_id: str | None = None) -> None:
        """Count a retrieval that lost one store (degraded) or both (unavailable)."""
        if not failures:
            return
        unavailable = len(failures) > 1
        for store in failures:
            stats = self._stats[store]
            if unavailable:
                stats.unavailable_retrievals += 1
            else:
                stats.degraded_retrievals += 1
        _log(
            logging.ERROR if unavailable else logging.WARNING,
            "retrieval_unavailable" if unavailable else "retrieval_degraded",
            failed_stores=sorted(failures),
            errors=dict(failures),
            user_id=user_id,
        )

    async def snapshot(self) -> dict[str, Any]:
        """Per-store counters and circuit state, keyed by store name."""
        async with self._lock:
            snap: dict[str, Any] = {}
            for store, stats in self._stats.items():
                circuit = self._circuits[store]
                snap[store] = {
                    **asdict(stats),
                    "circuit": {
                        "open": circuit.is_open,
                        "cooldown_seconds": round(circuit.cooldown_left(), 2),
                        "consecutive_failures": circuit.consecutive_failures,
                        "times_opened": circuit.times_opened,
                        "backoff_seconds": circuit.backoff_seconds,
                    },
                }
            return snap


store_monitor = StoreMonitor()
