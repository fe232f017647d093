"""Assistant chat schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from flavor_monk.schema.recommendation import RankedRecipeRead


class AssistantRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    intent_strength: float = Field(default=0.5, ge=0.0, le=1.0)


class AssistantResponse(BaseModel):
    reply: str
    provider: str
    query_type: str
    cached: bool = False
    cost: float = 0.0
    status: str
    recommendations: list[RankedRecipeRead] = Field(default_factory=list)
