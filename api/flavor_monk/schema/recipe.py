"""Recipe response schemas built from ranking candidates."""

from __future__ import annotations

from pydantic import Field, field_validator

from flavor_monk.schema.base import ORMModel


class IngredientRead(ORMModel):
    name: str
    amount: float | None = None
    unit: str | None = None


class RecipeRead(ORMModel):
    id: str
    name: str
    description: str | None = None
    prep_minutes: int
    cook_minutes: int
    total_minutes: int
    servings: int
    complexity: int
    cost_tier: str | None = None
    cuisine: str | None = None
    appliances: list[str] = Field(default_factory=list)
    ingredients: list[IngredientRead] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    nutrition: dict[str, float] | None = None
    average_rating: float | None = None
    rating_count: int = 0
    completion_rate: float | None = None
    source: str = "relational"

    @field_validator("tags", mode="before")
    @classmethod
    def _sorted_tags(cls, value):
        return sorted(value or [])
