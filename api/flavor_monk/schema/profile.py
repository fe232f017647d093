"""Profile read schema combining questionnaire answers and learned signals."""

from __future__ import annotations

from pydantic import BaseModel

from flavor_monk.models.user import BudgetTier, Goal, HealthCondition, Severity


class HealthConditionRead(BaseModel):
    condition: HealthCondition
    severity: Severity


class ProfileRead(BaseModel):
    user_id: str
    primary_goal: Goal | None = None
    secondary_goals: list[Goal] = []
    health_conditions: list[HealthConditionRead] = []
    allergies: list[str] = []
    cooking_skill: int
    max_prep_time: int
    budget: BudgetTier | None = None
    household_size: int
    appliances: list[str] = []
    cuisine_preferences: list[str] = []
    spice_tolerance: int
    portion_control_motivation: int
    habit_change_readiness: list[str] = []
    nutrient_deficiencies: list[str] = []
    ingredient_affinities: dict[str, float] = {}
    successful_recipe_count: int = 0
    constraint_strictness: float
