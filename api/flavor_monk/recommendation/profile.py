"""Profile normalization: learned ingredient affinities and constraint strictness."""

from __future__ import annotations

from typing import Iterable, Mapping

from flavor_monk.models.user import BudgetTier
from flavor_monk.recommendation.base import ConditionProfile, ProfileSnapshot
from flavor_monk.schema.questionnaire import QuestionnaireSubmission
from flavor_monk.utils.text import normalize_name

ALLERGY_PENALTY = 0.1
CONDITION_PENALTY = 0.15
BUDGET_PENALTY = 0.2
SHORT_PREP_PENALTY = 0.2
SHORT_PREP_MINUTES = 15
LOW_SKILL_PENALTY = 0.15
LOW_SKILL_LEVEL = 2
DISLIKE_SEED_SCORE = -2.0


def rating_delta(rating: int) -> float:
    """Affinity nudge for one rating: +(rating-3) when loved, -1 when disliked."""
    if rating >= 4:
        return float(rating - 3)
    if rating <= 2:
        return -1.0
    return 0.0


def rating_deltas(ingredients: Iterable[str], rating: int) -> dict[str, float]:
    """Per-ingredient affinity nudges for one rating, one entry per distinct ingredient."""
    delta = rating_delta(rating)
    if not delta:
        return {}
    names = dict.fromkeys(normalize_name(name) for name in ingredients)
    return {ingredient: delta for ingredient in names if ingredient}


def apply_rating(affinities: Mapping[str, float], ingredients: Iterable[str], rating: int) -> dict[str, float]:
    """Return a new affinity map with one rating applied to the recipe's ingredients."""
    updated = {normalize_name(name): float(score) for name, score in affinities.items()}
    for ingredient, delta in rating_deltas(ingredients, rating).items():
        updated[ingredient] = updated.get(ingredient, 0.0) + delta
    return updated


def learn_affinities(feedback: Iterable[tuple[Iterable[str], int]]) -> dict[str, float]:
    """Fold a feedback history of (ingredients, rating) pairs into an affinity map."""
    affinities: dict[str, float] = {}
    for ingredients, rating in feedback:
        affinities = apply_rating(affinities, ingredients, rating)
    return affinities


def snapshot_from_questionnaire(
    payload: QuestionnaireSubmission,
    *,
    user_id: str | None = None,
    affinities: Mapping[str, float] | None = None,
) -> ProfileSnapshot:
    """Build a ranking-time snapshot straight from questionnaire answers.

    Disliked ingredients seed a negative affinity only where ``affinities``
    has no learned score for them.
    """
    learned = {normalize_name(name): float(score) for name, score in (affinities or {}).items()}
    for ingredient in payload.disliked_ingredients:
        learned.setdefault(ingredient, DISLIKE_SEED_SCORE)
    return ProfileSnapshot(
        user_id=user_id,
        primary_goal=payload.primary_goal,
        secondary_goals=tuple(payload.secondary_goals),
        health_conditions=tuple(
            ConditionProfile(condition=entry.condition, severity=entry.severity) for entry in payload.health_conditions
        ),
        allergies=payload.allergies,
        cooking_skill=payload.cooking_skill,
        max_prep_time=payload.max_prep_time,
        budget=payload.budget,
        household_size=payload.household_size,
        appliances=payload.appliances,
        cuisine_preferences=payload.cuisine_preferences,
        spice_tolerance=payload.spice_tolerance,
        portion_control_motivation=payload.portion_control_motivation,
        habit_change_readiness=tuple(payload.habit_change_readiness),
        nutrient_deficiencies=tuple(payload.nutrient_deficiencies),
        ingredient_affinities=learned,
    )


def constraint_strictness(profile: ProfileSnapshot) -> float:
    """Score how loose a profile is: 1 means unconstrained, 0 means tightly boxed in."""
    penalties = (
        len(profile.allergies) * ALLERGY_PENALTY,
        len(profile.health_conditions) * CONDITION_PENALTY,
        BUDGET_PENALTY if profile.budget == BudgetTier.BUDGET else 0.0,
        SHORT_PREP_PENALTY if profile.max_prep_time < SHORT_PREP_MINUTES else 0.0,
        LOW_SKILL_PENALTY if profile.cooking_skill < LOW_SKILL_LEVEL else 0.0,
    )
    return max(0.0, 1.0 - sum(penalties))


def affinity_summary(affinities: Mapping[str, float], *, limit: int = 5) -> tuple[list[str], list[str]]:
    """Return (loved, avoided) ingredient names, strongest first."""
    ordered = sorted(affinities.items(), key=lambda item: item[1], reverse=True)
    loved = [name for name, score in ordered if score > 0][:limit]
    avoided = [name for name, score in reversed(ordered) if score < 0][:limit]
    return loved, avoided
