"""Recipe catalog queries and conversion into ranking candidates."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from fastapi import HTTPException, status
from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from flavor_monk.models.interaction import RecipeFeedback
from flavor_monk.models.recipe import (
    NutritionFacts,
    Recipe,
    RecipeAppliance,
    RecipeIngredient,
    RecipeStep,
    RecipeTag,
    TagCategory,
)
from flavor_monk.models.user import BudgetTier
from flavor_monk.recommendation.base import IngredientLine, RecipeCandidate
from flavor_monk.utils.text import normalize_name, recipe_slug

NUTRITION_COLUMNS = (
    "calories",
    "protein_g",
    "carbs_g",
    "fat_g",
    "saturated_fat_g",
    "sugar_g",
    "fiber_g",
    "sodium_mg",
    "omega3_g",
    "glycemic_index",
)
DEFAULT_LIMIT = 50


@dataclass(slots=True)
class RecipeFilters:
    """Structured catalog filters; unset fields do not constrain.

    ``appliances`` is the set a recipe's requirements must fit inside; an
    empty tuple means the caller knows nothing about the kitchen and applies
    no appliance constraint.
    """

    max_prep_minutes: float | None = None
    max_cook_minutes: float | None = None
    max_total_minutes: float | None = None
    max_complexity: float | None = None
    appliances: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    excluded_ingredients: tuple[str, ...] = ()
    cuisines: tuple[str, ...] = ()
    nutrient_ceilings: dict[str, float] = field(default_factory=dict)
    ids: tuple[str, ...] = ()
    limit: int = DEFAULT_LIMIT
    offset: int = 0


def _recipe_options():
    return (
        selectinload(Recipe.ingredients),
        selectinload(Recipe.steps),
        selectinload(Recipe.appliances),
        selectinload(Recipe.tags),
        selectinload(Recipe.nutrition),
    )


def _parse_ids(values: Iterable[str | uuid.UUID]) -> list[uuid.UUID]:
    parsed: list[uuid.UUID] = []
    for value in values:
        if isinstance(value, uuid.UUID):
            parsed.append(value)
            continue
        try:
            parsed.append(uuid.UUID(str(value)))
        except ValueError:
            continue
    return parsed


def _apply_filters(query, filters: RecipeFilters):
    """Translate ``RecipeFilters`` into WHERE clauses on a recipe select."""
    query = query.where(Recipe.archived_at.is_(None))
    if filters.max_prep_minutes and filters.max_prep_minutes > 0:
        query = query.where(Recipe.prep_minutes <= filters.max_prep_minutes)
    if filters.max_cook_minutes and filters.max_cook_minutes > 0:
        query = query.where(Recipe.cook_minutes <= filters.max_cook_minutes)
    if filters.max_total_minutes and filters.max_total_minutes > 0:
        query = query.where(Recipe.total_minutes <= filters.max_total_minutes)
    if filters.max_complexity is not None:
        query = query.where(Recipe.complexity <= filters.max_complexity)

    if filters.appliances:
        allowed = [normalize_name(name) for name in filters.appliances]
        unsupported = exists().where(
            RecipeAppliance.recipe_id == Recipe.id,
            RecipeAppliance.appliance.not_in(allowed),
        )
        query = query.where(~unsupported)

    if filters.tags:
        wanted = [normalize_name(name) for name in filters.tags]
        query = query.where(
            exists().where(RecipeTag.recipe_id == Recipe.id, RecipeTag.name.in_(wanted))
        )

    excluded = [normalize_name(name) for name in filters.excluded_ingredients if normalize_name(name)]
    if excluded:
        mentions = or_(*(RecipeIngredient.name.contains(name, autoescape=True) for name in excluded))
        query = query.where(~exists().where(RecipeIngredient.recipe_id == Recipe.id, mentions))

    if filters.cuisines:
        query = query.where(Recipe.cuisine.in_([normalize_name(name) for name in filters.cuisines]))

    ceilings = {column: value for column, value in filters.nutrient_ceilings.items() if column in NUTRITION_COLUMNS}
    if ceilings:
        # Recipes without nutrition facts (or without a given value) are not excluded.
        clauses = [
            or_(getattr(NutritionFacts, column).is_(None), getattr(NutritionFacts, column) <= value)
            for column, value in ceilings.items()
        ]
        query = query.outerjoin(NutritionFacts, NutritionFacts.recipe_id == Recipe.id).where(and_(*clauses))

    if filters.ids:
        query = query.where(Recipe.id.in_(_parse_ids(filters.ids)))
    return query


async def _rating_stats(session: AsyncSession, recipe_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, tuple[float, int]]:
    if not recipe_ids:
        return {}
    result = await session.execute(
        select(RecipeFeedback.recipe_id, func.avg(RecipeFeedback.rating), func.count(RecipeFeedback.id))
        .where(RecipeFeedback.recipe_id.in_(list(recipe_ids)))
        .group_by(RecipeFeedback.recipe_id)
    )
    return {row[0]: (float(row[1]), int(row[2])) for row in result.all()}


def to_candidate(recipe: Recipe, stats: tuple[float, int] | None = None) -> RecipeCandidate:
    """Convert a loaded recipe row into the ranking view."""
    nutrition = None
    if recipe.nutrition is not None:
        nutrition = {
            column: float(getattr(recipe.nutrition, column))
            for column in NUTRITION_COLUMNS
            if getattr(recipe.nutrition, column) is not None
        }
    average, count = stats or (None, 0)
    return RecipeCandidate(
        id=str(recipe.id),
        name=recipe.name,
        description=recipe.description,
        prep_minutes=recipe.prep_minutes or 0,
        cook_minutes=recipe.cook_minutes or 0,
        total_minutes=recipe.total_minutes or 0,
        servings=recipe.servings or 1,
        complexity=recipe.complexity or 3,
        cost_tier=recipe.cost_tier.value if recipe.cost_tier else None,
        cuisine=recipe.cuisine,
        appliances=tuple(entry.appliance for entry in recipe.appliances),
        ingredients=tuple(
            IngredientLine(name=line.name, amount=line.amount, unit=line.unit) for line in recipe.ingredients
        ),
        steps=tuple(step.instruction for step in recipe.steps),
        tags=frozenset(tag.name for tag in recipe.tags),
        nutrition=nutrition,
        average_rating=average,
        rating_count=count,
        completion_rate=recipe.completion_rate,
        source="relational",
    )


async def _to_candidates(session: AsyncSession, recipes: Sequence[Recipe]) -> list[RecipeCandidate]:
    stats = await _rating_stats(session, [recipe.id for recipe in recipes])
    return [to_candidate(recipe, stats.get(recipe.id)) for recipe in recipes]


async def find_recipe_rows(session: AsyncSession, filters: RecipeFilters) -> list[Recipe]:
    query = _apply_filters(select(Recipe).options(*_recipe_options()), filters)
    query = query.order_by(Recipe.quality_score.desc().nulls_last(), Recipe.name).offset(filters.offset)
    if filters.limit:
        query = query.limit(filters.limit)
    result = await session.execute(query)
    return list(result.scalars().unique().all())


async def find_recipes(session: AsyncSession, filters: RecipeFilters) -> list[RecipeCandidate]:
    """Return active recipes matching ``filters`` as ranking candidates."""
    return await _to_candidates(session, await find_recipe_rows(session, filters))


async def get_recipes_by_ids(session: AsyncSession, ids: Iterable[str | uuid.UUID]) -> list[RecipeCandidate]:
    """Hydrate active recipes by id, preserving the order of ``ids``."""
    parsed = _parse_ids(ids)
    if not parsed:
        return []
    result = await session.execute(
        select(Recipe)
        .options(*_recipe_options())
        .where(Recipe.id.in_(parsed), Recipe.archived_at.is_(None))
    )
    by_id = {recipe.id: recipe for recipe in result.scalars().unique().all()}
    ordered = [by_id[recipe_id] for recipe_id in parsed if recipe_id in by_id]
    return await _to_candidates(session, ordered)


async def get_recipe(session: AsyncSession, recipe_id: uuid.UUID, *, include_archived: bool = False) -> Recipe:
    query = select(Recipe).options(*_recipe_options()).where(Recipe.id == recipe_id)
    if not include_archived:
        query = query.where(Recipe.archived_at.is_(None))
    result = await session.execute(query)
    recipe = result.scalar_one_or_none()
    if not recipe:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return recipe


async def get_candidate(session: AsyncSession, recipe_id: uuid.UUID) -> RecipeCandidate:
    recipe = await get_recipe(session, recipe_id)
    stats = await _rating_stats(session, [recipe.id])
    return to_candidate(recipe, stats.get(recipe.id))


async def _generate_unique_slug(session: AsyncSession, name: str) -> str:
    base_slug = recipe_slug(name) or "recipe"
    slug = base_slug
    counter = 1
    while True:
        result = await session.execute(select(Recipe.id).where(Recipe.slug == slug))
        if not result.scalar_one_or_none():
            return slug
        slug = f"{base_slug}-{counter}"
        counter += 1


async def create_recipe(session: AsyncSession, payload: dict, *, commit: bool = True) -> Recipe:
    """Insert a recipe with its ingredients, steps, appliances, tags, and nutrition.

    ``payload`` uses the seed file layout; ``tags`` maps a tag category to a
    list of tag names.
    """
    prep = int(payload.get("prep_minutes") or 0)
    cook = int(payload.get("cook_minutes") or 0)
    recipe = Recipe(
        slug=await _generate_unique_slug(session, payload["name"]),
        name=payload["name"],
        description=payload.get("description"),
        prep_minutes=prep,
        cook_minutes=cook,
        total_minutes=int(payload.get("total_minutes") or prep + cook),
        servings=int(payload.get("servings") or 2),
        complexity=int(payload.get("complexity") or 3),
        cost_tier=BudgetTier(payload.get("cost_tier") or BudgetTier.MODERATE.value),
        cuisine=normalize_name(payload.get("cuisine")) or None,
    )
    for position, line in enumerate(payload.get("ingredients") or []):
        if isinstance(line, str):
            line = {"name": line}
        recipe.ingredients.append(
            RecipeIngredient(
                position=position,
                name=normalize_name(line["name"]),
                amount=line.get("amount"),
                unit=line.get("unit"),
            )
        )
    for number, step in enumerate(payload.get("steps") or [], start=1):
        if isinstance(step, str):
            step = {"instruction": step}
        recipe.steps.append(
            RecipeStep(
                step_number=number,
                instruction=step["instruction"],
                duration_minutes=step.get("duration_minutes"),
            )
        )
    for appliance in dict.fromkeys(normalize_name(name) for name in payload.get("appliances") or []):
        if appliance:
            recipe.appliances.append(RecipeAppliance(appliance=appliance))
    for category, names in (payload.get("tags") or {}).items():
        tag_category = TagCategory(category)
        for name in dict.fromkeys(normalize_name(name) for name in names or []):
            if name:
                recipe.tags.append(RecipeTag(category=tag_category, name=name))
    nutrition = payload.get("nutrition")
    if nutrition:
        recipe.nutrition = NutritionFacts(
            **{column: nutrition.get(column) for column in NUTRITION_COLUMNS if column in nutrition}
        )
    session.add(recipe)
    if commit:
        await session.commit()
        return await get_recipe(session, recipe.id)
    await session.flush()
    return recipe


async def list_active_recipes(session: AsyncSession, *, since: datetime | None = None) -> list[Recipe]:
    query = select(Recipe).options(*_recipe_options()).where(Recipe.archived_at.is_(None))
    if since is not None:
        query = query.where(Recipe.updated_at >= since)
    result = await session.execute(query.order_by(Recipe.created_at))
    return list(result.scalars().unique().all())


async def list_active_candidates(session: AsyncSession) -> list[RecipeCandidate]:
    """All active recipes as candidates, used to rebuild the vector index."""
    return await _to_candidates(session, await list_active_recipes(session))
