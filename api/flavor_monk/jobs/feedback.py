"""Per-event jobs enqueued when users interact with or rate recipes."""

from __future__ import annotations

import asyncio
import logging
import uuid

from flavor_monk.db.session import async_session
from flavor_monk.services import interaction_service, quality_service

logger = logging.getLogger("flavor_monk.jobs.feedback")


def learn_preferences_job(*, feedback_id: str) -> dict[str, object]:
    """Fold a rating into the rater's ingredient affinities; redelivery is a no-op."""

    async def _run() -> bool:
        async with async_session() as session:
            return await interaction_service.apply_feedback(session, uuid.UUID(feedback_id))

    applied = asyncio.run(_run())
    logger.info("Learned preferences from feedback %s (applied=%s)", feedback_id, applied)
    return {"feedback_id": feedback_id, "applied": applied}


def recipe_metrics_job(*, recipe_id: str) -> dict[str, object]:
    """Recompute a recipe's completion rate and quality score."""

    async def _run() -> quality_service.RecipeMetrics:
        async with async_session() as session:
            return await quality_service.refresh_recipe_metrics(session, uuid.UUID(recipe_id))

    metrics = asyncio.run(_run())
    logger.info(
        "Refreshed metrics for recipe %s: quality %.3f, flagged=%s",
        recipe_id,
        metrics.quality_score,
        metrics.flagged_for_review,
    )
    return {
        "recipe_id": recipe_id,
        "quality_score": metrics.quality_score,
        "completion_rate": metrics.completion_rate,
        "flagged_for_review": metrics.flagged_for_review,
    }
