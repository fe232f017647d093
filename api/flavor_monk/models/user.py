"""User accounts and the questionnaire-derived cooking profile."""

from __future__ import annotations

import enum
import typing
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flavor_monk.db.base_class import Base

JSON_COMPATIBLE = JSON().with_variant(JSONB, "postgresql")

if typing.TYPE_CHECKING:  # pragma: no cover
    from flavor_monk.models.interaction import RecipeFeedback, RecipeInteraction


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Goal(str, enum.Enum):
    """Dietary goals a user can pick as primary or secondary."""
    WEIGHT_LOSS = "weight_loss"
    MUSCLE_GAIN = "muscle_gain"
    ANTI_AGING = "anti_aging"
    ANTI_INFLAMMATORY = "anti_inflammatory"
    MEDICAL_CONDITION = "medical_condition"
    LIFESTYLE_DIET = "lifestyle_diet"
    GENERAL_HEALTH = "general_health"


class HealthCondition(str, enum.Enum):
    """Health conditions with a known nutrient-priority table."""
    DIABETES = "diabetes"
    HEART_DISEASE = "heart_disease"
    PCOS = "pcos"
    IBS = "ibs"
    ARTHRITIS = "arthritis"


class Severity(str, enum.Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class BudgetTier(str, enum.Enum):
    """Ordinal spending tiers shared by users and recipes."""
    BUDGET = "budget"
    MODERATE = "moderate"
    PREMIUM = "premium"


class User(Base):
    """Primary user account record."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow
    )

    profile: Mapped["UserProfile | None"] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )
    health_conditions: Mapped[list["UserHealthCondition"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    affinities: Mapped[list["IngredientAffinity"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    interactions: Mapped[list["RecipeInteraction"]] = relationship(back_populates="user")
    feedback: Mapped[list["RecipeFeedback"]] = relationship(back_populates="user")


class UserProfile(Base):
    """Questionnaire answers that shape recommendations."""
    __tablename__ = "user_profiles"
    __table_args__ = (UniqueConstraint("user_id", name="uq_user_profile"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"))
    primary_goal: Mapped[Goal] = mapped_column(
        Enum(Goal, name="goal", values_callable=_enum_values), nullable=False
    )
    secondary_goals: Mapped[list[str]] = mapped_column(JSON_COMPATIBLE, default=list)
    allergies: Mapped[list[str]] = mapped_column(JSON_COMPATIBLE, default=list)
    cooking_skill: Mapped[int] = mapped_column(Integer, default=3)
    max_prep_time: Mapped[int] = mapped_column(Integer, default=30)
    budget: Mapped[BudgetTier] = mapped_column(
        Enum(BudgetTier, name="budget_tier", values_callable=_enum_values), default=BudgetTier.MODERATE
    )
    household_size: Mapped[int] = mapped_column(Integer, default=1)
    appliances: Mapped[list[str]] = mapped_column(JSON_COMPATIBLE, default=list)
    cuisine_preferences: Mapped[list[str]] = mapped_column(JSON_COMPATIBLE, default=list)
    spice_tolerance: Mapped[int] = mapped_column(Integer, default=3)
    portion_control_motivation: Mapped[int] = mapped_column(Integer, default=3)
    habit_change_readiness: Mapped[list[str]] = mapped_column(JSON_COMPATIBLE, default=list)
    nutrient_deficiencies: Mapped[list[str]] = mapped_column(JSON_COMPATIBLE, default=list)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship(back_populates="profile")


class UserHealthCondition(Base):
    """A diagnosed condition and how strongly it constrains meals."""
    __tablename__ = "user_health_conditions"
    __table_args__ = (UniqueConstraint("user_id", "condition", name="uq_user_condition"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    condition: Mapped[HealthCondition] = mapped_column(
        Enum(HealthCondition, name="health_condition", values_callable=_enum_values), nullable=False
    )
    severity: Mapped[Severity] = mapped_column(
        Enum(Severity, name="severity", values_callable=_enum_values), default=Severity.MODERATE
    )

    user: Mapped["User"] = relationship(back_populates="health_conditions")


class IngredientAffinity(Base):
    """Learned like/dislike score for one ingredient, nudged by feedback."""
    __tablename__ = "ingredient_affinities"
    __table_args__ = (UniqueConstraint("user_id", "ingredient", name="uq_user_ingredient"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    ingredient: Mapped[str] = mapped_column(String(255), nullable=False)
    score: Mapped[float] = mapped_column(Float, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship(back_populates="affinities")
