"""Search parameter builder: turn a profile and expansion level into retrieval bounds."""

from __future__ import annotations

from flavor_monk.models.user import Goal, HealthCondition
from flavor_monk.recommendation.base import HealthFilter, ProfileSnapshot, SearchParameters
from flavor_monk.recommendation.weights import (
    ANTI_INFLAMMATORY_SPICE_BLENDS,
    APPLIANCE_ALTERNATIVES,
    CONDITION_NUTRIENTS,
    CUISINE_INGREDIENTS,
    GOAL_NUTRIENTS,
)

BASE_COOK_MINUTES = 45
MIN_COOK_MINUTES = 10
INSTANT_POT_SAVINGS = 15
MAX_COMPLEXITY = 5
ALLERGEN_FLOOR_SCORE = 5.0
BATCH_COOKING_BONUS = 0.2


def estimate_cook_time_preference(profile: ProfileSnapshot) -> float:
    """Guess how long a user is willing to cook from skill, motivation, and kit."""
    minutes = (
        BASE_COOK_MINUTES
        + (profile.cooking_skill - 3) * 5
        + (profile.portion_control_motivation - 3) * 3
        - (INSTANT_POT_SAVINGS if "instant pot" in profile.appliances else 0)
    )
    return float(max(MIN_COOK_MINUTES, minutes))


def adaptive_complexity(profile: ProfileSnapshot, expansion: float) -> float:
    return min(MAX_COMPLEXITY, profile.cooking_skill + expansion * 1.5)


def build_health_filters(profile: ProfileSnapshot, expansion: float) -> dict[str, HealthFilter]:
    """Collect nutrient priorities from conditions and the primary goal."""
    tables = [CONDITION_NUTRIENTS[condition] for condition in profile.conditions if condition in CONDITION_NUTRIENTS]
    if profile.primary_goal in GOAL_NUTRIENTS:
        tables.append(GOAL_NUTRIENTS[profile.primary_goal])

    importances: dict[str, float] = {}
    for table in tables:
        for nutrient, importance in table.items():
            importances[nutrient] = max(importance, importances.get(nutrient, 0.0))
    return {
        nutrient: HealthFilter(importance=importance, flexibility=expansion * (1 - importance))
        for nutrient, importance in importances.items()
    }


def build_ingredient_weights(profile: ProfileSnapshot, expansion: float) -> dict[str, float]:
    """Weight liked, disliked, allergenic, and cuisine-typical ingredients.

    Dislikes and allergens stay negative at every expansion level.
    """
    weights: dict[str, float] = {}
    for ingredient, score in profile.liked_ingredients.items():
        weights[ingredient] = score * (2 - expansion)

    suppressed: set[str] = set()
    for ingredient, score in profile.disliked_ingredients.items():
        weights[ingredient] = -2 * abs(score)
        suppressed.add(ingredient)
    for allergen in profile.allergies:
        magnitude = max(abs(profile.ingredient_affinities.get(allergen, 0.0)), ALLERGEN_FLOOR_SCORE)
        weights[allergen] = -2 * magnitude
        suppressed.add(allergen)

    for cuisine in profile.cuisine_preferences:
        for ingredient in CUISINE_INGREDIENTS.get(cuisine, ()):
            if ingredient in suppressed:
                continue
            weights[ingredient] = weights.get(ingredient, 0.0) + 0.5 * expansion
    return weights


def build_appliance_options(profile: ProfileSnapshot, expansion: float) -> tuple[str, ...]:
    options = list(profile.appliances)
    if expansion > 0.5:
        for appliance in profile.appliances:
            alternatives = APPLIANCE_ALTERNATIVES.get(appliance, ())
            options.extend(alternatives[: int(expansion * len(alternatives))])
    return tuple(dict.fromkeys(options))


def build_search_parameters(profile: ProfileSnapshot, expansion: float) -> SearchParameters:
    anti_inflammatory = (
        profile.primary_goal == Goal.ANTI_INFLAMMATORY or HealthCondition.ARTHRITIS in profile.conditions
    )
    return SearchParameters(
        expansion=expansion,
        max_prep_time=profile.max_prep_time * (1 + expansion * 0.3),
        max_cook_time=estimate_cook_time_preference(profile) * (1 + expansion * 0.4),
        max_complexity=adaptive_complexity(profile, expansion),
        health_filters=build_health_filters(profile, expansion),
        ingredient_weights=build_ingredient_weights(profile, expansion),
        appliance_options=build_appliance_options(profile, expansion),
        preferred_cuisines=profile.cuisine_preferences,
        cuisine_flexibility=expansion,
        excluded_ingredients=profile.allergies,
        preferred_spice_blends=ANTI_INFLAMMATORY_SPICE_BLENDS if anti_inflammatory else (),
        micronutrient_priority=profile.nutrient_deficiencies,
        batch_cooking_bonus=BATCH_COOKING_BONUS if "meal_prep" in profile.habit_change_readiness else 0.0,
    )
