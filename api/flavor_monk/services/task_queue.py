"""RQ task queue wrapper with inline fallback for local/test runs."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.registry import DeferredJobRegistry, FailedJobRegistry, ScheduledJobRegistry, StartedJobRegistry
from rq.worker import Worker
from rq_scheduler import Scheduler

from flavor_monk.core.config import settings
from flavor_monk.utils.redaction import redact_secrets

logger = logging.getLogger("flavor_monk.services.task_queue")

# Feedback jobs are idempotent, so a few retries with backoff are safe.
DEFAULT_RETRY = Retry(max=3, interval=[5, 15, 30])


class TaskQueue:
    """Thin wrapper around RQ that falls back to inline execution."""

    def __init__(self) -> None:
        self.queue_names: list[str] = settings.worker_queue_names or ["default"]
        self._connection: Redis | None = None
        self._enabled = False
        self._bootstrap()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def connection(self) -> Redis | None:
        return self._connection

    def _bootstrap(self) -> None:
        """Initialize Redis connectivity unless disabled for tests."""
        if settings.environment.lower() == "test":
            logger.info("Task queue disabled in test environment")
            return
        try:
            connection = Redis.from_url(settings.redis_url)
            connection.ping()
        except Exception as exc:  # pragma: no cover - network/redis specific
            logger.warning("Redis unavailable; running jobs inline: %s", redact_secrets(str(exc)))
            self._connection = None
            self._enabled = False
            return
        self._connection = connection
        self._enabled = True
        logger.info("Task queue ready (queues: %s)", ", ".join(self.queue_names))

    def get_queue(self, queue_name: str | None = None) -> Queue:
        """Return a configured queue instance for enqueuing jobs."""
        if not self._connection:
            raise RuntimeError("Queue connection not initialized")
        target = queue_name if queue_name in self.queue_names else self.queue_names[0]
        return Queue(target, connection=self._connection)

    async def enqueue_feedback_event(
        self,
        *,
        feedback_id: uuid.UUID,
        fallback: Callable[[], Any],
    ) -> Any:
        """Apply a rating to the rater's ingredient affinities out of band."""
        from flavor_monk.jobs.feedback import learn_preferences_job

        return await self.enqueue_or_run(
            learn_preferences_job,
            fallback=fallback,
            queue_name="feedback",
            timeout_seconds=30,
            description=f"learn_preferences:{feedback_id}",
            feedback_id=str(feedback_id),
        )

    async def enqueue_recipe_metrics(
        self,
        *,
        recipe_id: uuid.UUID,
        fallback: Callable[[], Any],
    ) -> Any:
        """Recompute completion rate and quality score for a recipe."""
        from flavor_monk.jobs.feedback import recipe_metrics_job

        return await self.enqueue_or_run(
            recipe_metrics_job,
            fallback=fallback,
            queue_name="feedback",
            timeout_seconds=30,
            description=f"recipe_metrics:{recipe_id}",
            recipe_id=str(recipe_id),
        )

    async def enqueue_or_run(
        self,
        func: Callable[..., Any],
        *,
        fallback: Callable[[], Any] | None = None,
        queue_name: str | None = None,
        timeout_seconds: int = 60,
        retry: Retry | None = DEFAULT_RETRY,
        description: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Enqueue a job and return its id; run it inline when the queue is unavailable.

        ``fallback`` runs instead of ``func`` inline, which lets callers reuse
        their open session rather than having the job open its own.
        """

        async def _run_fallback() -> Any:
            target = fallback or (lambda: func(**kwargs))
            result = target()
            if asyncio.iscoroutine(result):
                return await result
            return result

        if not self._enabled or not self._connection:
            return await _run_fallback()

        def _enqueue() -> str:
            queue = self.get_queue(queue_name)
            job = queue.enqueue(
                func,
                kwargs=kwargs,
                job_timeout=timeout_seconds,
                description=description,
                retry=retry,
            )
            return job.id

        try:
            return await asyncio.to_thread(_enqueue)
        except Exception as exc:  # pragma: no cover - network/redis specific
            logger.warning("Falling back to inline execution after queue failure: %s", redact_secrets(str(exc)))
            return await _run_fallback()

    def snapshot(self) -> dict[str, Any]:
        """Return a diagnostic snapshot of queue, worker, and scheduler state."""
        if not self._connection:
            return {
                "status": "offline",
                "queues": [],
                "workers": [],
                "error": "queue connection not initialized",
                "redis_url": redact_secrets(settings.redis_url),
            }

        queues: list[dict[str, Any]] = []
        for name in self.queue_names:
            queue = Queue(name, connection=self._connection)
            queues.append(
                {
                    "name": name,
                    "size": queue.count,
                    "deferred": len(DeferredJobRegistry(queue=queue)),
                    "scheduled": len(ScheduledJobRegistry(queue=queue)),
                    "started": len(StartedJobRegistry(queue=queue)),
                    "failed": len(FailedJobRegistry(queue=queue)),
                }
            )

        workers: list[dict[str, Any]] = []
        try:
            for worker in Worker.all(connection=self._connection):
                workers.append(
                    {
                        "name": worker.name,
                        "state": getattr(worker, "state", "unknown"),
                        "queues": list(worker.queue_names()),
                        "current_job_id": worker.get_current_job_id(),
                    }
                )
        except RedisError as exc:  # pragma: no cover - network/redis specific
            logger.warning("Unable to list workers: %s", exc)

        scheduler_summary: dict[str, Any] = {}
        try:
            scheduler = Scheduler(connection=self._connection, queue_name=self.queue_names[0])
            scheduler_summary["scheduled_jobs"] = len(list(scheduler.get_jobs()))
            scheduler_summary["healthy"] = True
        except Exception:  # pragma: no cover - redis specific
            scheduler_summary["scheduled_jobs"] = None
            scheduler_summary["healthy"] = False

        warnings: list[str] = []
        if not workers:
            warnings.append("no_workers")
        if scheduler_summary.get("healthy") is False:
            warnings.append("scheduler_unreachable")
        status = "online" if not warnings else "degraded"
        return {
            "status": status,
            "queues": queues,
            "workers": workers,
            "redis_url": redact_secrets(settings.redis_url),
            "scheduler": scheduler_summary,
            "warnings": warnings,
            "checked_at": datetime.utcnow().isoformat() + "Z",
        }


task_queue = TaskQueue()
