from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable

from flavor_monk.core.config import settings

logger = logging.getLogger("flavor_monk.llm.budget")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailyBudgetTracker:
    """Cloud spend for the current UTC day; the tally resets at midnight UTC.

    One tracker is shared by every router in a process. It is not persisted,
    so a restart starts the day from zero.
    """

    def __init__(self, daily_limit: float | None = None, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.daily_limit = settings.daily_cloud_budget if daily_limit is None else daily_limit
        self._clock = clock
        self._day: date = clock().date()
        self._spent = 0.0

    def _roll(self) -> None:
        today = self._clock().date()
        if today != self._day:
            logger.info("Cloud budget reset for %s (spent %.4f on %s)", today, self._spent, self._day)
            self._day = today
            self._spent = 0.0

    @property
    def spent(self) -> float:
        self._roll()
        return self._spent

    @property
    def remaining(self) -> float:
        return max(0.0, self.daily_limit - self.spent)

    def can_spend(self, amount: float) -> bool:
        self._roll()
        return self._spent + max(0.0, amount) <= self.daily_limit

    def record(self, amount: float) -> None:
        if amount <= 0:
            return
        self._roll()
        self._spent += amount
        if self._spent >= self.daily_limit:
            logger.warning("Daily cloud budget of %.2f exhausted", self.daily_limit)

    def snapshot(self) -> dict[str, Any]:
        return {
            "day": self._clock().date().isoformat(),
            "limit": self.daily_limit,
            "spent": round(self.spent, 6),
            "remaining": round(self.remaining, 6),
        }
