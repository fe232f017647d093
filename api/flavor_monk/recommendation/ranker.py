"""Personalized ranking of retrieved recipe candidates.

Each candidate gets six sub-scores in [0, 1] that are blended with
configurable weights into ``personalized_score``. Every scorer is total:
missing nutrition, empty preference maps, and zero history all resolve to
neutral values instead of raising.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Iterable, Mapping

from flavor_monk.core.config import DEFAULT_RANKING_WEIGHTS
from flavor_monk.recommendation.base import (
    ProfileSnapshot,
    RankedCandidate,
    RecipeCandidate,
    SearchParameters,
    SubScores,
)
from flavor_monk.recommendation.weights import (
    BATCH_COOKING_TAG,
    BEHAVIORAL_WEIGHTS,
    CONDITION_NUTRIENTS,
    NUTRIENT_TARGETS,
    TAG_NUTRIENTS,
    MotivationBundle,
)
from flavor_monk.utils.text import mentions_ingredient

DEFAULT_WEIGHTS: Mapping[str, float] = MappingProxyType(DEFAULT_RANKING_WEIGHTS)
NEUTRAL = 0.5
NEW_FOODS_READINESS = "new_foods"
OPEN_NOVELTY = 0.7
CAUTIOUS_NOVELTY = 0.3


def _clamp(value: float) -> float:
    if math.isnan(value):
        return NEUTRAL
    return max(0.0, min(1.0, value))


def contains_any(recipe: RecipeCandidate, needles: Iterable[str], *, whole_word: bool = False) -> bool:
    """Return True if any recipe ingredient mentions one of ``needles``."""
    needles = [needle for needle in needles if needle]
    return any(
        mentions_ingredient(line.name, needle, whole_word=whole_word)
        for line in recipe.ingredients
        for needle in needles
    )


def suppressed_ingredients(profile: ProfileSnapshot, parameters: SearchParameters | None = None) -> tuple[str, ...]:
    """Allergens and disliked ingredients; never relaxed by expansion."""
    if parameters is not None:
        return parameters.suppressed_ingredients
    return tuple(dict.fromkeys((*profile.allergies, *profile.disliked_ingredients)))


def nutrient_alignment(recipe: RecipeCandidate, nutrient: str) -> float | None:
    """Score one nutrient for a recipe in [0, 1], or None when it cannot be judged.

    Limits score 1 at or under target and fall linearly to 0 at twice the
    target; floors score the fraction of the target reached.
    """
    target = NUTRIENT_TARGETS.get(nutrient)
    if target is not None:
        value = (recipe.nutrition or {}).get(target.column)
        if value is None:
            return None
        if target.kind == "limit":
            if value <= target.value:
                return 1.0
            return max(0.0, 1.0 - (value - target.value) / target.value)
        return min(1.0, max(0.0, value / target.value))

    tag = TAG_NUTRIENTS.get(nutrient)
    if tag is None or not recipe.tags:
        return None
    return 1.0 if tag in recipe.tags else 0.0


def health_alignment(recipe: RecipeCandidate, profile: ProfileSnapshot) -> float:
    score = NEUTRAL
    for condition in profile.conditions:
        requirements = CONDITION_NUTRIENTS.get(condition)
        if not requirements:
            continue
        weighted = 0.0
        total_importance = 0.0
        for nutrient, importance in requirements.items():
            alignment = nutrient_alignment(recipe, nutrient)
            if alignment is None:
                continue
            weighted += importance * (alignment - NEUTRAL)
            total_importance += importance
        if total_importance:
            score += 0.5 * weighted / total_importance
    return _clamp(score)


def preference_alignment(
    recipe: RecipeCandidate,
    profile: ProfileSnapshot,
    parameters: SearchParameters | None = None,
) -> float:
    """Logistic squash of the summed ingredient weights; allergens score zero.

    Positive weights need a whole-word match; negative ones match any mention.
    """
    if contains_any(recipe, profile.allergies):
        return 0.0
    weights = parameters.ingredient_weights if parameters else profile.ingredient_affinities
    total = 0.0
    for name, weight in weights.items():
        if contains_any(recipe, (name,), whole_word=weight > 0):
            total += weight
    score = 1.0 / (1.0 + math.exp(-total / 2.0))
    if parameters and parameters.batch_cooking_bonus and BATCH_COOKING_TAG in recipe.tags:
        score += parameters.batch_cooking_bonus
    return _clamp(score)


def behavioral_fit(recipe: RecipeCandidate, profile: ProfileSnapshot) -> float:
    bundle = MotivationBundle.LOW if profile.portion_control_motivation < 3 else MotivationBundle.HIGH
    weights = BEHAVIORAL_WEIGHTS[bundle]
    score = 0.0
    if weights.get("simplicity") and recipe.complexity:
        score += (5 - recipe.complexity) / 5 * weights["simplicity"]
    if weights.get("time") and recipe.total_minutes:
        score += max(0.0, 1 - recipe.total_minutes / 60) * weights["time"]
    return _clamp(score)


def complexity_match(recipe: RecipeCandidate, profile: ProfileSnapshot) -> float:
    return max(0.0, 1 - abs(recipe.complexity - profile.cooking_skill) / 5)


def historical_success(recipe: RecipeCandidate, profile: ProfileSnapshot) -> float:
    ratings = profile.recipe_ratings.get(recipe.id)
    if not ratings:
        return NEUTRAL
    return _clamp(sum(ratings) / len(ratings) / 5)


def novelty_balance(recipe: RecipeCandidate, profile: ProfileSnapshot) -> float:
    preference = OPEN_NOVELTY if NEW_FOODS_READINESS in profile.habit_change_readiness else CAUTIOUS_NOVELTY
    is_novel = recipe.id not in profile.successful_recipe_ids
    return preference if is_novel else 1 - preference


def score_candidate(
    recipe: RecipeCandidate,
    profile: ProfileSnapshot,
    parameters: SearchParameters | None = None,
    weights: Mapping[str, float] | None = None,
) -> RankedCandidate:
    weights = weights or DEFAULT_WEIGHTS
    sub_scores = SubScores(
        health=health_alignment(recipe, profile),
        preference=preference_alignment(recipe, profile, parameters),
        behavioral=behavioral_fit(recipe, profile),
        complexity=complexity_match(recipe, profile),
        historical=historical_success(recipe, profile),
        novelty=novelty_balance(recipe, profile),
    )
    total = sum(value * weights.get(name, 0.0) for name, value in sub_scores.as_dict().items())
    return RankedCandidate(recipe=recipe, personalized_score=_clamp(total), sub_scores=sub_scores)


def rank_candidates(
    candidates: Iterable[RecipeCandidate],
    profile: ProfileSnapshot,
    parameters: SearchParameters | None = None,
    weights: Mapping[str, float] | None = None,
) -> list[RankedCandidate]:
    """Score and sort candidates descending; ``sorted`` is stable so ties keep retrieval order.

    Candidates mentioning an allergen or disliked ingredient sort below every
    clean candidate whatever their score.
    """
    avoided = suppressed_ingredients(profile, parameters)
    scored = [score_candidate(recipe, profile, parameters, weights) for recipe in candidates]
    return sorted(
        scored,
        key=lambda ranked: (contains_any(ranked.recipe, avoided), -ranked.personalized_score),
    )
