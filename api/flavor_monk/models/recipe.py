"""Recipe catalog models: ingredients, steps, appliances, tags, and nutrition."""

from __future__ import annotations

import enum
import typing
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flavor_monk.db.base_class import Base
from flavor_monk.models.user import BudgetTier

JSON_COMPATIBLE = JSON().with_variant(JSONB, "postgresql")

if typing.TYPE_CHECKING:  # pragma: no cover
    from flavor_monk.models.interaction import RecipeFeedback, RecipeInteraction


class TagCategory(str, enum.Enum):
    """Tag families a recipe can be labelled with."""
    MEDICAL = "medical"
    DIETARY = "dietary"
    PRACTICAL = "practical"
    NUTRITIONAL = "nutritional"


class Recipe(Base):
    """Canonical recipe record shared by all users."""
    __tablename__ = "recipes"
    __table_args__ = (
        CheckConstraint("complexity >= 1 AND complexity <= 5", name="ck_recipe_complexity_range"),
        CheckConstraint("servings >= 1", name="ck_recipe_servings_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(String(2000))
    prep_minutes: Mapped[int] = mapped_column(Integer, default=0)
    cook_minutes: Mapped[int] = mapped_column(Integer, default=0)
    total_minutes: Mapped[int] = mapped_column(Integer, default=0)
    servings: Mapped[int] = mapped_column(Integer, default=2)
    complexity: Mapped[int] = mapped_column(Integer, default=3)
    cost_tier: Mapped[BudgetTier] = mapped_column(
        Enum(BudgetTier, name="budget_tier", values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        default=BudgetTier.MODERATE,
    )
    cuisine: Mapped[str | None] = mapped_column(String(64), index=True)
    quality_score: Mapped[float | None] = mapped_column(Float)
    completion_rate: Mapped[float | None] = mapped_column(Float)
    flagged_for_review: Mapped[bool] = mapped_column(Boolean, default=False)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow
    )

    ingredients: Mapped[list["RecipeIngredient"]] = relationship(
        back_populates="recipe", cascade="all, delete-orphan", order_by="RecipeIngredient.position"
    )
    steps: Mapped[list["RecipeStep"]] = relationship(
        back_populates="recipe", cascade="all, delete-orphan", order_by="RecipeStep.step_number"
    )
    appliances: Mapped[list["RecipeAppliance"]] = relationship(
        back_populates="recipe", cascade="all, delete-orphan"
    )
    tags: Mapped[list["RecipeTag"]] = relationship(back_populates="recipe", cascade="all, delete-orphan")
    nutrition: Mapped["NutritionFacts | None"] = relationship(
        back_populates="recipe", cascade="all, delete-orphan", uselist=False
    )
    interactions: Mapped[list["RecipeInteraction"]] = relationship(
        back_populates="recipe", cascade="all, delete-orphan"
    )
    feedback: Mapped[list["RecipeFeedback"]] = relationship(back_populates="recipe", cascade="all, delete-orphan")


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipe_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    amount: Mapped[float | None] = mapped_column(Float)
    unit: Mapped[str | None] = mapped_column(String(64))

    recipe: Mapped[Recipe] = relationship(back_populates="ingredients")


class RecipeStep(Base):
    __tablename__ = "recipe_steps"
    __table_args__ = (UniqueConstraint("recipe_id", "step_number", name="uq_recipe_step"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipe_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), index=True
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    instruction: Mapped[str] = mapped_column(String(2000), nullable=False)
    duration_minutes: Mapped[int | None] = mapped_column(Integer)

    recipe: Mapped[Recipe] = relationship(back_populates="steps")


class RecipeAppliance(Base):
    """Appliance a recipe requires; names are stored lowercase."""
    __tablename__ = "recipe_appliances"
    __table_args__ = (UniqueConstraint("recipe_id", "appliance", name="uq_recipe_appliance"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipe_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), index=True
    )
    appliance: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    recipe: Mapped[Recipe] = relationship(back_populates="appliances")


class RecipeTag(Base):
    __tablename__ = "recipe_tags"
    __table_args__ = (UniqueConstraint("recipe_id", "category", "name", name="uq_recipe_tag"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipe_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), index=True
    )
    category: Mapped[TagCategory] = mapped_column(
        Enum(TagCategory, name="tag_category", values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    recipe: Mapped[Recipe] = relationship(back_populates="tags")


class NutritionFacts(Base):
    """Per-serving nutrition for a recipe."""
    __tablename__ = "nutrition_facts"

    recipe_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True
    )
    calories: Mapped[float | None] = mapped_column(Float)
    protein_g: Mapped[float | None] = mapped_column(Float)
    carbs_g: Mapped[float | None] = mapped_column(Float)
    fat_g: Mapped[float | None] = mapped_column(Float)
    saturated_fat_g: Mapped[float | None] = mapped_column(Float)
    sugar_g: Mapped[float | None] = mapped_column(Float)
    fiber_g: Mapped[float | None] = mapped_column(Float)
    sodium_mg: Mapped[float | None] = mapped_column(Float)
    omega3_g: Mapped[float | None] = mapped_column(Float)
    glycemic_index: Mapped[float | None] = mapped_column(Float)

    recipe: Mapped[Recipe] = relationship(back_populates="nutrition")


class ArchivedRecipe(Base):
    """Snapshot of a recipe removed from the active catalog."""
    __tablename__ = "archived_recipes"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    original_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)
    recipe_data: Mapped[dict] = mapped_column(JSON_COMPATIBLE, nullable=False)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
