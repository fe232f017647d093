"""Profile persistence: questionnaire upserts, learned affinities, and snapshots for ranking."""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime
from typing import Mapping

from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.models.interaction import RecipeFeedback, RecipeInteraction
from flavor_monk.models.user import IngredientAffinity, User, UserHealthCondition, UserProfile
from flavor_monk.recommendation.base import ConditionProfile, ProfileSnapshot
from flavor_monk.recommendation.errors import InputError
from flavor_monk.recommendation.profile import DISLIKE_SEED_SCORE
from flavor_monk.schema.questionnaire import QuestionnaireSubmission
from flavor_monk.utils.text import normalize_name

SUCCESS_RATING = 4
FAILURE_RATING = 2


def parse_user_id(user_id: str | uuid.UUID | None) -> uuid.UUID:
    """Validate a user id, raising ``InputError`` for blank or malformed values."""
    if isinstance(user_id, uuid.UUID):
        return user_id
    if not user_id or not str(user_id).strip():
        raise InputError("user id is required")
    try:
        return uuid.UUID(str(user_id).strip())
    except ValueError as exc:
        raise InputError(f"invalid user id: {user_id!r}") from exc


async def _get_profile_row(session: AsyncSession, user_id: uuid.UUID) -> UserProfile | None:
    result = await session.execute(select(UserProfile).where(UserProfile.user_id == user_id))
    return result.scalar_one_or_none()


async def get_affinities(session: AsyncSession, user_id: uuid.UUID) -> dict[str, float]:
    result = await session.execute(
        select(IngredientAffinity.ingredient, IngredientAffinity.score).where(IngredientAffinity.user_id == user_id)
    )
    return {row[0]: float(row[1]) for row in result.all()}


async def _history(
    session: AsyncSession, user_id: uuid.UUID
) -> tuple[tuple[str, ...], tuple[str, ...], dict[str, tuple[int, ...]]]:
    """Return (successful ids, failed ids, ratings by recipe) for a user."""
    ratings: dict[str, list[int]] = defaultdict(list)
    feedback = await session.execute(
        select(RecipeFeedback.recipe_id, RecipeFeedback.rating)
        .where(RecipeFeedback.user_id == user_id)
        .order_by(RecipeFeedback.created_at)
    )
    for recipe_id, rating in feedback.all():
        ratings[str(recipe_id)].append(int(rating))

    completed = await session.execute(
        select(RecipeInteraction.recipe_id)
        .where(
            RecipeInteraction.user_id == user_id,
            or_(RecipeInteraction.completed.is_(True), RecipeInteraction.made_again.is_(True)),
        )
        .distinct()
    )
    successful: dict[str, None] = {str(recipe_id): None for recipe_id in completed.scalars().all()}
    failed: dict[str, None] = {}
    for recipe_id, values in ratings.items():
        average = sum(values) / len(values)
        if average >= SUCCESS_RATING:
            successful.setdefault(recipe_id, None)
        elif average <= FAILURE_RATING:
            failed.setdefault(recipe_id, None)
            successful.pop(recipe_id, None)
    return tuple(successful), tuple(failed), {key: tuple(value) for key, value in ratings.items()}


async def get_user_profile(session: AsyncSession, user_id: str | uuid.UUID) -> ProfileSnapshot:
    """Assemble the ranking view of a user.

    Users who have not completed (or have archived) the questionnaire get an
    otherwise empty snapshot that still carries their learned signals.
    """
    user_uuid = parse_user_id(user_id)
    user = await session.get(User, user_uuid)
    if user is None:
        raise InputError(f"unknown user id: {user_uuid}")

    profile = await _get_profile_row(session, user_uuid)
    conditions_result = await session.execute(
        select(UserHealthCondition).where(UserHealthCondition.user_id == user_uuid)
    )
    affinities = await get_affinities(session, user_uuid)
    successful, failed, ratings = await _history(session, user_uuid)

    learned = {
        "user_id": str(user_uuid),
        "ingredient_affinities": affinities,
        "successful_recipe_ids": successful,
        "failed_recipe_ids": failed,
        "recipe_ratings": ratings,
    }
    if profile is None or profile.archived_at is not None:
        return ProfileSnapshot(**learned)

    return ProfileSnapshot(
        primary_goal=profile.primary_goal,
        secondary_goals=tuple(profile.secondary_goals or ()),
        health_conditions=tuple(
            ConditionProfile(condition=row.condition, severity=row.severity)
            for row in conditions_result.scalars().all()
        ),
        allergies=tuple(profile.allergies or ()),
        cooking_skill=profile.cooking_skill or 0,
        max_prep_time=profile.max_prep_time or 0,
        budget=profile.budget,
        household_size=profile.household_size or 1,
        appliances=tuple(profile.appliances or ()),
        cuisine_preferences=tuple(profile.cuisine_preferences or ()),
        spice_tolerance=profile.spice_tolerance or 0,
        portion_control_motivation=profile.portion_control_motivation or 0,
        habit_change_readiness=tuple(profile.habit_change_readiness or ()),
        nutrient_deficiencies=tuple(profile.nutrient_deficiencies or ()),
        **learned,
    )


async def save_questionnaire(
    session: AsyncSession, user_id: uuid.UUID, payload: QuestionnaireSubmission
) -> UserProfile:
    """Create or replace a user's questionnaire answers.

    Health conditions are replaced wholesale. Learned affinities are kept;
    disliked ingredients only seed a negative score where none exists yet.
    """
    profile = await _get_profile_row(session, user_id)
    if profile is None:
        profile = UserProfile(user_id=user_id, primary_goal=payload.primary_goal)
        session.add(profile)

    profile.primary_goal = payload.primary_goal
    profile.secondary_goals = [goal.value for goal in payload.secondary_goals]
    profile.allergies = payload.allergies
    profile.cooking_skill = payload.cooking_skill
    profile.max_prep_time = payload.max_prep_time
    profile.budget = payload.budget
    profile.household_size = payload.household_size
    profile.appliances = payload.appliances
    profile.cuisine_preferences = payload.cuisine_preferences
    profile.spice_tolerance = payload.spice_tolerance
    profile.portion_control_motivation = payload.portion_control_motivation
    profile.habit_change_readiness = payload.habit_change_readiness
    profile.nutrient_deficiencies = payload.nutrient_deficiencies
    profile.archived_at = None

    await session.execute(delete(UserHealthCondition).where(UserHealthCondition.user_id == user_id))
    for entry in payload.health_conditions:
        session.add(UserHealthCondition(user_id=user_id, condition=entry.condition, severity=entry.severity))

    existing = await get_affinities(session, user_id)
    for ingredient in payload.disliked_ingredients:
        if ingredient not in existing:
            session.add(IngredientAffinity(user_id=user_id, ingredient=ingredient, score=DISLIKE_SEED_SCORE))

    await session.commit()
    await session.refresh(profile)
    return profile


def _affinity_insert(session: AsyncSession):
    dialect_name = session.bind.dialect.name if session.bind else None
    if dialect_name == "postgresql":
        return postgresql_insert(IngredientAffinity)
    return sqlite_insert(IngredientAffinity)


async def add_affinity_deltas(
    session: AsyncSession, user_id: uuid.UUID, deltas: Mapping[str, float], *, commit: bool = True
) -> None:
    """Nudge affinity scores by relative deltas, creating rows for new ingredients.

    Each delta is applied in the database (``score = score + delta``) so
    concurrent writers for the same user never overwrite each other.
    """
    for ingredient, delta in deltas.items():
        key = normalize_name(ingredient)
        if not key or not delta:
            continue
        result = await session.execute(
            update(IngredientAffinity)
            .where(IngredientAffinity.user_id == user_id, IngredientAffinity.ingredient == key)
            .values(score=IngredientAffinity.score + delta, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            continue
        insert_stmt = _affinity_insert(session).values(
            id=uuid.uuid4(), user_id=user_id, ingredient=key, score=delta, updated_at=datetime.utcnow()
        )
        await session.execute(
            insert_stmt.on_conflict_do_update(
                index_elements=[IngredientAffinity.user_id, IngredientAffinity.ingredient],
                set_={"score": IngredientAffinity.score + insert_stmt.excluded.score},
            )
        )
    if commit:
        await session.commit()


async def reset_affinities(session: AsyncSession, user_id: uuid.UUID) -> int:
    """Explicit preference wipe; the only path that clears learned affinities."""
    result = await session.execute(delete(IngredientAffinity).where(IngredientAffinity.user_id == user_id))
    await session.commit()
    return int(result.rowcount or 0)


async def archive_profile(session: AsyncSession, user_id: uuid.UUID) -> UserProfile | None:
    """Soft-archive a profile; rows are never hard-deleted."""
    profile = await _get_profile_row(session, user_id)
    if profile is None:
        return None
    if profile.archived_at is None:
        profile.archived_at = datetime.utcnow()
        await session.commit()
        await session.refresh(profile)
    return profile
