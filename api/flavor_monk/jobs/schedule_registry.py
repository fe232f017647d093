from __future__ import annotations

import logging
from datetime import datetime, timedelta

from rq_scheduler import Scheduler

from flavor_monk.core.config import settings
from flavor_monk.jobs.maintenance import recipe_quality_job
from flavor_monk.services.task_queue import task_queue

logger = logging.getLogger("flavor_monk.jobs.schedule_registry")


def _schedule_entries() -> list[dict]:
    queue_name = task_queue.queue_names[0] if task_queue.queue_names else "default"
    entries: list[dict] = []
    if settings.quality_refresh_hours > 0:
        entries.append(
            {
                "id": "maintenance:recipe_quality",
                "func": recipe_quality_job,
                "interval": settings.quality_refresh_hours * 3600,
                "repeat": None,
                "queue_name": "maintenance" if "maintenance" in task_queue.queue_names else queue_name,
            }
        )
    return entries


def ensure_schedules() -> None:
    """Idempotently register periodic jobs with rq-scheduler."""
    if settings.environment.lower() == "test":
        return
    if not task_queue.connection:
        logger.info("Skipping scheduler bootstrap; queue connection is unavailable")
        return
    scheduler = Scheduler(connection=task_queue.connection, queue_name=task_queue.queue_names[0])
    for entry in _schedule_entries():
        existing = scheduler.get_job(entry["id"])
        if existing:
            continue
        scheduler.schedule(
            scheduled_time=datetime.utcnow(),
            func=entry["func"],
            interval=entry["interval"],
            repeat=entry["repeat"],
            id=entry["id"],
            queue_name=entry["queue_name"],
            result_ttl=int(timedelta(hours=1).total_seconds()),
        )
        logger.info("Scheduled job %s every %ss on queue %s", entry["id"], entry["interval"], entry["queue_name"])
