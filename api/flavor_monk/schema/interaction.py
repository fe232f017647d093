"""Interaction and feedback schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from flavor_monk.schema.base import ORMModel


class InteractionCreate(BaseModel):
    """Micro-interaction flags for one event; at least one must be set."""
    viewed: bool = False
    saved: bool = False
    started: bool = False
    completed: bool = False
    photo_uploaded: bool = False
    shared_with_friends: bool = False
    made_again: bool = False

    @model_validator(mode="after")
    def _require_flag(self) -> "InteractionCreate":
        if not any(self.model_dump().values()):
            raise ValueError("At least one interaction flag must be true")
        return self


class InteractionRead(ORMModel):
    id: UUID
    recipe_id: UUID
    viewed: bool
    saved: bool
    started: bool
    completed: bool
    photo_uploaded: bool
    shared_with_friends: bool
    made_again: bool
    created_at: datetime


class FeedbackCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    notes: str | None = Field(default=None, max_length=2000)


class FeedbackRead(ORMModel):
    id: UUID
    recipe_id: UUID
    rating: int
    notes: str | None = None
    created_at: datetime
