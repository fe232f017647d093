"""Recording micro-interactions and ratings, and folding ratings into affinities."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Mapping

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.models.interaction import INTERACTION_FLAGS, RecipeFeedback, RecipeInteraction
from flavor_monk.models.recipe import RecipeIngredient
from flavor_monk.recommendation.errors import InputError
from flavor_monk.recommendation.profile import rating_deltas
from flavor_monk.services import profile_service, quality_service, recipe_service, recommendation_service
from flavor_monk.services.task_queue import task_queue

logger = logging.getLogger("flavor_monk.services.interactions")


def _validate_flags(flags: Mapping[str, bool]) -> dict[str, bool]:
    unknown = sorted(set(flags) - set(INTERACTION_FLAGS))
    if unknown:
        raise InputError(f"unknown interaction flags: {', '.join(unknown)}")
    cleaned = {name: bool(value) for name, value in flags.items()}
    if not any(cleaned.values()):
        raise InputError("at least one interaction flag must be set")
    return cleaned


async def record_interaction(
    session: AsyncSession,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    flags: Mapping[str, bool],
) -> RecipeInteraction:
    """Append an interaction event and queue a metrics refresh for the recipe."""
    cleaned = _validate_flags(flags)
    await recipe_service.get_recipe(session, recipe_id)
    interaction = RecipeInteraction(user_id=user_id, recipe_id=recipe_id, **cleaned)
    session.add(interaction)
    await session.commit()
    await session.refresh(interaction)

    await task_queue.enqueue_recipe_metrics(
        recipe_id=recipe_id,
        fallback=lambda: quality_service.refresh_recipe_metrics(session, recipe_id),
    )
    recommendation_service.invalidate_user(user_id)
    return interaction


async def submit_feedback(
    session: AsyncSession,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    rating: int,
    notes: str | None = None,
) -> RecipeFeedback:
    """Store a rating, then learn from it and rescore the recipe out of band."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InputError("rating must be an integer between 1 and 5")
    await recipe_service.get_recipe(session, recipe_id)
    feedback = RecipeFeedback(user_id=user_id, recipe_id=recipe_id, rating=rating, notes=notes)
    session.add(feedback)
    await session.commit()
    await session.refresh(feedback)
    feedback_id = feedback.id

    await task_queue.enqueue_feedback_event(
        feedback_id=feedback_id,
        fallback=lambda: apply_feedback(session, feedback_id),
    )
    await task_queue.enqueue_recipe_metrics(
        recipe_id=recipe_id,
        fallback=lambda: quality_service.refresh_recipe_metrics(session, recipe_id),
    )
    recommendation_service.invalidate_user(user_id)
    await session.refresh(feedback)
    return feedback


async def apply_feedback(session: AsyncSession, feedback_id: uuid.UUID) -> bool:
    """Fold one rating into the rater's ingredient affinities.

    The feedback row is claimed with a conditional update before any score
    moves, so a redelivered or concurrent job is a no-op. Scores change by
    relative deltas in the same transaction. Returns True when affinities
    were updated.
    """
    row = (
        await session.execute(
            select(RecipeFeedback.user_id, RecipeFeedback.recipe_id, RecipeFeedback.rating).where(
                RecipeFeedback.id == feedback_id
            )
        )
    ).first()
    if row is None:
        logger.warning("Feedback %s vanished before it could be applied", feedback_id)
        return False
    user_id, recipe_id, rating = row

    claim = await session.execute(
        update(RecipeFeedback)
        .where(RecipeFeedback.id == feedback_id, RecipeFeedback.affinity_applied_at.is_(None))
        .values(affinity_applied_at=datetime.now(timezone.utc))
    )
    if not claim.rowcount:
        await session.commit()
        return False

    result = await session.execute(select(RecipeIngredient.name).where(RecipeIngredient.recipe_id == recipe_id))
    ingredients = list(result.scalars().all())
    deltas = rating_deltas(ingredients, rating)
    await profile_service.add_affinity_deltas(session, user_id, deltas, commit=False)
    await session.commit()
    recommendation_service.invalidate_user(user_id)
    logger.info("Applied rating %d from user %s across %d ingredients", rating, user_id, len(deltas))
    return True


async def list_user_interactions(
    session: AsyncSession, user_id: uuid.UUID, *, limit: int = 50
) -> list[RecipeInteraction]:
    result = await session.execute(
        select(RecipeInteraction)
        .where(RecipeInteraction.user_id == user_id)
        .order_by(RecipeInteraction.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def top_rated_recipe_ids(session: AsyncSession, user_id: uuid.UUID, *, limit: int = 3) -> list[uuid.UUID]:
    """Recipes the user rated highest, most recent first among ties."""
    result = await session.execute(
        select(RecipeFeedback.recipe_id)
        .where(RecipeFeedback.user_id == user_id, RecipeFeedback.rating >= profile_service.SUCCESS_RATING)
        .order_by(RecipeFeedback.rating.desc(), RecipeFeedback.created_at.desc())
    )
    ordered: dict[uuid.UUID, None] = {}
    for recipe_id in result.scalars().all():
        ordered.setdefault(recipe_id, None)
        if len(ordered) >= limit:
            break
    return list(ordered)
