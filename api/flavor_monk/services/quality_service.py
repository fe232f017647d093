"""Recipe quality scoring, review flags, and archival of poor or unused recipes."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.core.config import settings
from flavor_monk.models.interaction import RecipeFeedback, RecipeInteraction
from flavor_monk.models.recipe import ArchivedRecipe, Recipe
from flavor_monk.schema.recipe import RecipeRead
from flavor_monk.services import recipe_service

logger = logging.getLogger("flavor_monk.services.quality")

QUALITY_WEIGHTS = {
    "rating": 0.4,
    "nutrition": 0.2,
    "completion": 0.2,
    "ingredients": 0.1,
    "repeat": 0.1,
}
REASON_LOW_RATING = "low_rating"
REASON_UNUSED = "unused"


@dataclass(slots=True)
class RecipeMetrics:
    recipe_id: uuid.UUID
    started: int
    completed: int
    made_again: int
    rating_count: int
    average_rating: float | None
    completion_rate: float | None
    repeat_rate: float
    ingredient_availability: float
    nutrition_score: float
    quality_score: float
    flagged_for_review: bool


def nutrition_score(nutrition: Mapping[str, float] | None) -> float:
    """Rough balance score per serving: penalize extremes, reward fiber and protein."""
    if not nutrition:
        return 0.5
    score = 1.0
    if (nutrition.get("calories") or 0) > 800:
        score -= 0.1
    if (nutrition.get("sodium_mg") or 0) > 1000:
        score -= 0.2
    if (nutrition.get("sugar_g") or 0) > 20:
        score -= 0.1
    if (nutrition.get("fiber_g") or 0) > 5:
        score += 0.1
    if (nutrition.get("protein_g") or 0) > 20:
        score += 0.1
    return max(0.0, min(1.0, score))


def ingredient_availability(recipe: Recipe) -> float:
    """Share of ingredient lines with both an amount and a unit."""
    if not recipe.ingredients:
        return 0.0
    specified = sum(1 for line in recipe.ingredients if line.amount is not None and line.unit)
    return specified / len(recipe.ingredients)


def quality_score(
    *,
    average_rating: float | None,
    nutrition: float,
    completion_rate: float | None,
    availability: float,
    repeat_rate: float,
) -> float:
    score = (
        QUALITY_WEIGHTS["rating"] * ((average_rating or 0.0) / 5)
        + QUALITY_WEIGHTS["nutrition"] * nutrition
        + QUALITY_WEIGHTS["completion"] * (completion_rate or 0.0)
        + QUALITY_WEIGHTS["ingredients"] * availability
        + QUALITY_WEIGHTS["repeat"] * repeat_rate
    )
    return round(max(0.0, min(1.0, score)), 4)


def should_flag(completion_rate: float | None, started: int) -> bool:
    """Flag for review once enough starts show most cooks give up."""
    return (
        completion_rate is not None
        and completion_rate < settings.quality_min_completion_rate
        and started > settings.quality_review_min_started
    )


async def compute_recipe_metrics(session: AsyncSession, recipe_id: uuid.UUID) -> RecipeMetrics:
    recipe = await recipe_service.get_recipe(session, recipe_id, include_archived=True)
    counts = await session.execute(
        select(
            func.count().filter(RecipeInteraction.started.is_(True)),
            func.count().filter(RecipeInteraction.completed.is_(True)),
            func.count().filter(RecipeInteraction.made_again.is_(True)),
        ).where(RecipeInteraction.recipe_id == recipe_id)
    )
    started, completed, made_again = (int(value or 0) for value in counts.one())
    ratings = await session.execute(
        select(func.avg(RecipeFeedback.rating), func.count(RecipeFeedback.id)).where(
            RecipeFeedback.recipe_id == recipe_id
        )
    )
    average, rating_count = ratings.one()
    average_rating = float(average) if average is not None else None

    completion_rate = completed / started if started else None
    repeat_rate = min(1.0, made_again / completed) if completed else 0.0
    candidate = recipe_service.to_candidate(recipe)
    nutrition = nutrition_score(candidate.nutrition)
    availability = ingredient_availability(recipe)
    return RecipeMetrics(
        recipe_id=recipe.id,
        started=started,
        completed=completed,
        made_again=made_again,
        rating_count=int(rating_count or 0),
        average_rating=average_rating,
        completion_rate=completion_rate,
        repeat_rate=repeat_rate,
        ingredient_availability=availability,
        nutrition_score=nutrition,
        quality_score=quality_score(
            average_rating=average_rating,
            nutrition=nutrition,
            completion_rate=completion_rate,
            availability=availability,
            repeat_rate=repeat_rate,
        ),
        flagged_for_review=should_flag(completion_rate, started),
    )


async def refresh_recipe_metrics(session: AsyncSession, recipe_id: uuid.UUID) -> RecipeMetrics:
    """Recompute and store a recipe's metrics; safe to run any number of times."""
    metrics = await compute_recipe_metrics(session, recipe_id)
    recipe = await session.get(Recipe, recipe_id)
    recipe.completion_rate = metrics.completion_rate
    recipe.quality_score = metrics.quality_score
    if metrics.flagged_for_review and not recipe.flagged_for_review:
        logger.warning(
            "Recipe %s flagged for review: completion %.2f over %d starts",
            recipe_id,
            metrics.completion_rate,
            metrics.started,
        )
    recipe.flagged_for_review = metrics.flagged_for_review
    recipe.last_reviewed_at = datetime.utcnow()
    await session.commit()
    return metrics


async def archive_recipe(session: AsyncSession, recipe_id: uuid.UUID, reason: str) -> ArchivedRecipe | None:
    """Copy a recipe into the archive, then drop it from the active catalog.

    The recipe row is soft-archived so interaction and feedback history stays
    intact. Returns None if it was already archived.
    """
    recipe = await recipe_service.get_recipe(session, recipe_id, include_archived=True)
    if recipe.archived_at is not None:
        return None
    snapshot = RecipeRead.model_validate(recipe_service.to_candidate(recipe)).model_dump(mode="json")
    archived = ArchivedRecipe(original_id=recipe.id, reason=reason, recipe_data=snapshot)
    session.add(archived)
    await session.flush()
    recipe.archived_at = datetime.utcnow()
    await session.commit()
    logger.info("Archived recipe %s (%s)", recipe_id, reason)
    return archived


async def prune_low_rated(
    session: AsyncSession,
    *,
    min_rating: float | None = None,
    min_feedback_count: int | None = None,
) -> list[uuid.UUID]:
    """Archive active recipes with enough ratings and a poor average."""
    min_rating = settings.quality_min_rating if min_rating is None else min_rating
    min_feedback_count = settings.quality_min_feedback_count if min_feedback_count is None else min_feedback_count
    result = await session.execute(
        select(RecipeFeedback.recipe_id)
        .join(Recipe, Recipe.id == RecipeFeedback.recipe_id)
        .where(Recipe.archived_at.is_(None))
        .group_by(RecipeFeedback.recipe_id)
        .having(func.count(RecipeFeedback.id) >= min_feedback_count)
        .having(func.avg(RecipeFeedback.rating) < min_rating)
    )
    archived: list[uuid.UUID] = []
    for recipe_id in result.scalars().all():
        if await archive_recipe(session, recipe_id, REASON_LOW_RATING):
            archived.append(recipe_id)
    return archived


async def archive_unused(session: AsyncSession, *, retention_days: int | None = None) -> list[uuid.UUID]:
    """Archive recipes older than the retention window with no feedback inside it."""
    retention_days = settings.quality_retention_days if retention_days is None else retention_days
    if retention_days <= 0:
        return []
    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    recent_feedback = (
        select(RecipeFeedback.id)
        .where(RecipeFeedback.recipe_id == Recipe.id, RecipeFeedback.created_at >= cutoff)
        .exists()
    )
    result = await session.execute(
        select(Recipe.id).where(Recipe.archived_at.is_(None), Recipe.created_at < cutoff, ~recent_feedback)
    )
    archived: list[uuid.UUID] = []
    for recipe_id in result.scalars().all():
        if await archive_recipe(session, recipe_id, REASON_UNUSED):
            archived.append(recipe_id)
    return archived


async def run_quality_pass(session: AsyncSession) -> dict[str, object]:
    """Nightly pass: archive poor and unused recipes, then rescore the rest."""
    low_rated = await prune_low_rated(session)
    unused = await archive_unused(session)
    recipe_ids = [recipe.id for recipe in await recipe_service.list_active_recipes(session)]
    flagged = 0
    for recipe_id in recipe_ids:
        metrics = await refresh_recipe_metrics(session, recipe_id)
        flagged += int(metrics.flagged_for_review)
    return {
        "archived_low_rating": [str(recipe_id) for recipe_id in low_rated],
        "archived_unused": [str(recipe_id) for recipe_id in unused],
        "rescored": len(recipe_ids),
        "flagged": flagged,
    }
