"""Questionnaire submission schema; the only way a profile is created or replaced."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from flavor_monk.models.user import BudgetTier, Goal, HealthCondition, Severity
from flavor_monk.utils.text import normalize_name


class HealthConditionInput(BaseModel):
    condition: HealthCondition
    severity: Severity = Severity.MODERATE


class QuestionnaireSubmission(BaseModel):
    """Questionnaire answers; unknown goals or conditions are rejected with a 422."""
    primary_goal: Goal
    secondary_goals: list[Goal] = Field(default_factory=list)
    health_conditions: list[HealthConditionInput] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    cooking_skill: int = Field(default=3, ge=1, le=5)
    max_prep_time: int = Field(default=30, ge=0, le=600)
    budget: BudgetTier = BudgetTier.MODERATE
    household_size: int = Field(default=1, ge=1, le=20)
    appliances: list[str] = Field(default_factory=list)
    cuisine_preferences: list[str] = Field(default_factory=list)
    spice_tolerance: int = Field(default=3, ge=1, le=5)
    portion_control_motivation: int = Field(default=3, ge=1, le=5)
    habit_change_readiness: list[str] = Field(default_factory=list)
    nutrient_deficiencies: list[str] = Field(default_factory=list)
    disliked_ingredients: list[str] = Field(default_factory=list)

    @field_validator(
        "allergies",
        "appliances",
        "cuisine_preferences",
        "habit_change_readiness",
        "nutrient_deficiencies",
        "disliked_ingredients",
    )
    @classmethod
    def _normalize_names(cls, value: list[str]) -> list[str]:
        """Lowercase, trim, and dedupe free-text list answers."""
        return list(dict.fromkeys(name for name in (normalize_name(item) for item in value) if name))

    @field_validator("health_conditions")
    @classmethod
    def _dedupe_conditions(cls, value: list[HealthConditionInput]) -> list[HealthConditionInput]:
        by_condition = {entry.condition: entry for entry in value}
        return list(by_condition.values())
