"""Append-only user/recipe interaction and rating records."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flavor_monk.db.base_class import Base
from flavor_monk.models.recipe import Recipe
from flavor_monk.models.user import User

INTERACTION_FLAGS = (
    "viewed",
    "saved",
    "started",
    "completed",
    "photo_uploaded",
    "shared_with_friends",
    "made_again",
)


class RecipeInteraction(Base):
    """A single micro-interaction event; never updated after insert."""
    __tablename__ = "recipe_interactions"
    __table_args__ = (Index("ix_interaction_user_recipe", "user_id", "recipe_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"))
    recipe_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"))
    viewed: Mapped[bool] = mapped_column(Boolean, default=False)
    saved: Mapped[bool] = mapped_column(Boolean, default=False)
    started: Mapped[bool] = mapped_column(Boolean, default=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    photo_uploaded: Mapped[bool] = mapped_column(Boolean, default=False)
    shared_with_friends: Mapped[bool] = mapped_column(Boolean, default=False)
    made_again: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)

    user: Mapped[User] = relationship(back_populates="interactions")
    recipe: Mapped[Recipe] = relationship(back_populates="interactions")


class RecipeFeedback(Base):
    """A 1-5 star rating with optional notes."""
    __tablename__ = "recipe_feedback"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_feedback_rating_range"),
        Index("ix_feedback_user_recipe", "user_id", "recipe_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"))
    recipe_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"))
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(2000))
    # Set once the rating has been folded into the rater's ingredient affinities.
    affinity_applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)

    user: Mapped[User] = relationship(back_populates="feedback")
    recipe: Mapped[Recipe] = relationship(back_populates="feedback")
