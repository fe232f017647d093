from __future__ import annotations

import math

import pytest

from flavor_monk.models.user import HealthCondition
from flavor_monk.recommendation.base import ConditionProfile, IngredientLine, ProfileSnapshot, RecipeCandidate
from flavor_monk.recommendation.parameters import build_search_parameters
from flavor_monk.recommendation.ranker import (
    behavioral_fit,
    complexity_match,
    health_alignment,
    historical_success,
    novelty_balance,
    nutrient_alignment,
    rank_candidates,
    score_candidate,
)


def _recipe(recipe_id: str, *ingredients: str, **overrides) -> RecipeCandidate:
    data = {
        "id": recipe_id,
        "name": recipe_id.title(),
        "prep_minutes": 10,
        "cook_minutes": 20,
        "total_minutes": 30,
        "complexity": 2,
        "ingredients": tuple(IngredientLine(name=name) for name in ingredients),
    }
    data.update(overrides)
    return RecipeCandidate(**data)


def test_allergen_recipes_never_reach_top_three_at_full_expansion():
    profile = ProfileSnapshot(user_id="u1", cooking_skill=2, max_prep_time=15, allergies=["peanut"])
    parameters = build_search_parameters(profile, 1.0)
    candidates = [
        _recipe("satay", "peanut butter", "chicken"),
        _recipe("pad-thai", "Peanuts", "rice noodles"),
        _recipe("lentil-soup", "lentils", "onion"),
        _recipe("tomato-salad", "tomato", "cucumber"),
        _recipe("rice-bowl", "rice", "egg"),
    ]

    ranked = rank_candidates(candidates, profile, parameters)

    top_three = [entry.recipe.id for entry in ranked[:3]]
    assert "satay" not in top_three
    assert "pad-thai" not in top_three
    assert all(entry.sub_scores.preference == 0.0 for entry in ranked if entry.recipe.id in {"satay", "pad-thai"})


def test_historical_success_is_neutral_without_history():
    profile = ProfileSnapshot(user_id="new")
    ranked = rank_candidates([_recipe("a", "tomato"), _recipe("b", "basil")], profile)
    assert [entry.sub_scores.historical for entry in ranked] == [0.5, 0.5]


def test_historical_success_averages_past_ratings():
    profile = ProfileSnapshot(recipe_ratings={"a": (5, 3)})
    assert historical_success(_recipe("a"), profile) == pytest.approx(0.8)
    assert historical_success(_recipe("b"), profile) == 0.5


def test_ties_keep_retrieval_order():
    profile = ProfileSnapshot(user_id="u1", cooking_skill=3)
    candidates = [_recipe(f"twin-{index}", "tomato") for index in range(5)]
    ranked = rank_candidates(candidates, profile)
    assert [entry.recipe.id for entry in ranked] == [candidate.id for candidate in candidates]


def test_scores_are_clamped_and_nan_safe():
    profile = ProfileSnapshot(cooking_skill=3)
    weighted = score_candidate(_recipe("a", "tomato"), profile, weights={name: 10.0 for name in (
        "health", "preference", "behavioral", "complexity", "historical", "novelty"
    )})
    assert weighted.personalized_score == 1.0

    nan_weighted = score_candidate(_recipe("a", "tomato"), profile, weights={"health": math.nan})
    assert nan_weighted.personalized_score == 0.5

    for entry in rank_candidates([_recipe("x", "salt"), _recipe("y")], profile):
        assert 0.0 <= entry.personalized_score <= 1.0
        assert all(0.0 <= value <= 1.0 for value in entry.sub_scores.as_dict().values())


def test_nutrient_alignment_limits_floors_and_tags():
    recipe = _recipe("a", nutrition={"sugar_g": 15, "fiber_g": 4}, tags=frozenset({"anti_inflammatory"}))
    assert nutrient_alignment(recipe, "sugar") == pytest.approx(0.5)
    assert nutrient_alignment(recipe, "fiber") == pytest.approx(0.5)
    assert nutrient_alignment(recipe, "sodium") is None
    assert nutrient_alignment(recipe, "anti_inflammatory") == 1.0
    assert nutrient_alignment(recipe, "fodmap") == 0.0
    assert nutrient_alignment(_recipe("b"), "fodmap") is None
    assert nutrient_alignment(_recipe("c", nutrition={"sugar_g": 40}), "sugar") == 0.0


def test_health_alignment_rewards_condition_friendly_recipes():
    profile = ProfileSnapshot(health_conditions=[ConditionProfile(condition=HealthCondition.DIABETES)])
    friendly = _recipe("a", nutrition={"sugar_g": 5, "carbs_g": 30, "fiber_g": 8})
    unknown = _recipe("b")
    assert health_alignment(friendly, profile) == pytest.approx(0.75)
    assert health_alignment(unknown, profile) == 0.5
    assert health_alignment(friendly, ProfileSnapshot()) == 0.5


def test_behavioral_fit_depends_on_motivation():
    recipe = _recipe("a")
    low = behavioral_fit(recipe, ProfileSnapshot(portion_control_motivation=1))
    high = behavioral_fit(recipe, ProfileSnapshot(portion_control_motivation=4))
    assert low == pytest.approx(3 / 5 * 0.9 + 0.5 * 0.85)
    # The high-motivation bundle carries neither a simplicity nor a time weight.
    assert high == 0.0


def test_complexity_and_novelty_scores():
    assert complexity_match(_recipe("a", complexity=5), ProfileSnapshot(cooking_skill=3)) == pytest.approx(0.6)

    open_profile = ProfileSnapshot(habit_change_readiness=["new_foods"], successful_recipe_ids=("seen",))
    assert novelty_balance(_recipe("fresh"), open_profile) == 0.7
    assert novelty_balance(_recipe("seen"), open_profile) == pytest.approx(0.3)
    assert novelty_balance(_recipe("fresh"), ProfileSnapshot()) == 0.3


def test_liked_ingredients_lift_preference():
    profile = ProfileSnapshot(ingredient_affinities={"salmon": 3.0, "cilantro": -2.0})
    parameters = build_search_parameters(profile, 0.2)
    liked = score_candidate(_recipe("a", "salmon fillet"), profile, parameters)
    disliked = score_candidate(_recipe("b", "cilantro"), profile, parameters)
    plain = score_candidate(_recipe("c", "rice"), profile, parameters)
    assert liked.sub_scores.preference > plain.sub_scores.preference > disliked.sub_scores.preference
    assert plain.sub_scores.preference == 0.5


@pytest.mark.parametrize("expansion", [0.0, 1.0])
def test_disliked_recipes_sort_below_clean_ones(expansion):
    profile = ProfileSnapshot(
        user_id="u1",
        cooking_skill=2,
        max_prep_time=15,
        portion_control_motivation=1,
        ingredient_affinities={"peanut": -2.0},
    )
    parameters = build_search_parameters(profile, expansion)
    candidates = [
        _recipe("satay", "peanut sauce", complexity=1, total_minutes=10),
        _recipe("a", "lentils", complexity=3, total_minutes=45),
        _recipe("b", "tomato", complexity=4, total_minutes=50),
        _recipe("c", "rice", complexity=4, total_minutes=55),
        _recipe("d", "egg", complexity=5, total_minutes=60),
    ]

    ranked = rank_candidates(candidates, profile, parameters)

    assert parameters.ingredient_weights["peanut"] < 0
    assert "satay" not in [entry.recipe.id for entry in ranked[:3]]
    assert ranked[-1].recipe.id == "satay"


def test_liked_ingredients_match_whole_words_only():
    profile = ProfileSnapshot(ingredient_affinities={"rice": 3.0})
    parameters = build_search_parameters(profile, 0.0)
    rice = score_candidate(_recipe("a", "brown rices"), profile, parameters)
    licorice = score_candidate(_recipe("b", "licorice root"), profile, parameters)
    assert rice.sub_scores.preference > 0.5
    assert licorice.sub_scores.preference == 0.5
