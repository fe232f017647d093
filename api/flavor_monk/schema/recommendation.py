"""Recommendation request/response schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from flavor_monk.schema.base import ORMModel
from flavor_monk.schema.recipe import RecipeRead


class RecommendationRequest(BaseModel):
    query: str = Field(min_length=1, max_length=500)
    intent_strength: float = Field(default=0.5, ge=0.0, le=1.0)
    limit: int = Field(default=10, ge=1, le=50)


class SubScoresRead(ORMModel):
    health: float
    preference: float
    behavioral: float
    complexity: float
    historical: float
    novelty: float


class RankedRecipeRead(ORMModel):
    recipe: RecipeRead
    personalized_score: float
    sub_scores: SubScoresRead


class RecommendationResponse(ORMModel):
    """Ranked results; ``status`` separates "nothing matched" from "stores unavailable"."""
    status: Literal["ok", "empty", "unavailable"]
    expansion: float | None = None
    sources: list[str] = Field(default_factory=list)
    degraded: bool = False
    failures: dict[str, str] = Field(default_factory=dict)
    candidates: list[RankedRecipeRead] = Field(default_factory=list)
