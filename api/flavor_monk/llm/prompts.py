from __future__ import annotations

from typing import Sequence

from flavor_monk.recommendation.base import ProfileSnapshot, RankedCandidate, RecipeCandidate
from flavor_monk.recommendation.profile import affinity_summary

MAX_RANKED_IN_PROMPT = 3


def _describe_recipe(recipe: RecipeCandidate) -> str:
    parts = [f"{recipe.name} ({recipe.total_minutes or recipe.prep_minutes + recipe.cook_minutes} min"]
    parts.append(f", complexity {recipe.complexity}/5")
    if recipe.cuisine:
        parts.append(f", {recipe.cuisine}")
    parts.append(")")
    return "".join(parts)


def _profile_lines(profile: ProfileSnapshot) -> list[str]:
    lines: list[str] = []
    if profile.primary_goal:
        lines.append(f"- Primary goal: {profile.primary_goal.value.replace('_', ' ')}")
    if profile.cooking_skill:
        lines.append(f"- Cooking skill: {profile.cooking_skill}/5")
    if profile.max_prep_time:
        lines.append(f"- Max prep time: {profile.max_prep_time} minutes")
    if profile.appliances:
        lines.append(f"- Appliances: {', '.join(profile.appliances)}")
    if profile.allergies:
        lines.append(f"- Allergies (never suggest): {', '.join(profile.allergies)}")
    if profile.health_conditions:
        conditions = ", ".join(
            f"{entry.condition.value.replace('_', ' ')} ({entry.severity.value})" for entry in profile.health_conditions
        )
        lines.append(f"- Health conditions: {conditions}")
    if profile.cuisine_preferences:
        lines.append(f"- Favourite cuisines: {', '.join(profile.cuisine_preferences)}")
    loved, avoided = affinity_summary(profile.ingredient_affinities)
    if loved:
        lines.append(f"- Loves: {', '.join(loved)}")
    if avoided:
        lines.append(f"- Avoids: {', '.join(avoided)}")
    return lines


def build_assistant_prompt(
    query: str,
    profile: ProfileSnapshot,
    ranked: Sequence[RankedCandidate] = (),
    top_rated: Sequence[RecipeCandidate] = (),
) -> str:
    """Enrich a chat message with the user's profile and their best-fitting recipes."""
    sections: list[str] = []
    profile_lines = _profile_lines(profile)
    if profile_lines:
        sections.append("User profile:\n" + "\n".join(profile_lines))
    if top_rated:
        sections.append(
            "Recipes they rated highly:\n" + "\n".join(f"- {_describe_recipe(recipe)}" for recipe in top_rated)
        )
    if ranked:
        sections.append(
            "Best matches from the catalog for this request:\n"
            + "\n".join(
                f"{position}. {_describe_recipe(entry.recipe)}"
                for position, entry in enumerate(ranked[:MAX_RANKED_IN_PROMPT], start=1)
            )
        )
    sections.append(f"User message: {query.strip()}")
    sections.append("Reply in a few short paragraphs, recommending from the catalog matches where they fit.")
    return "\n\n".join(sections)
