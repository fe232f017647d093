"""Core value types passed between the recommendation stages."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from flavor_monk.models.user import BudgetTier, Goal, HealthCondition, Severity
from flavor_monk.utils.text import normalize_name


class ConditionProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    condition: HealthCondition
    severity: Severity = Severity.MODERATE


class ProfileSnapshot(BaseModel):
    """Read-only view of a user's profile at ranking time.

    Missing fields fall back to zero/empty defaults so every scoring
    function stays total for partially completed questionnaires.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    primary_goal: Goal | None = None
    secondary_goals: tuple[Goal, ...] = ()
    health_conditions: tuple[ConditionProfile, ...] = ()
    allergies: tuple[str, ...] = ()
    cooking_skill: int = Field(default=0, ge=0, le=5)
    max_prep_time: int = Field(default=0, ge=0)
    budget: BudgetTier | None = None
    household_size: int = Field(default=1, ge=1)
    appliances: tuple[str, ...] = ()
    cuisine_preferences: tuple[str, ...] = ()
    spice_tolerance: int = Field(default=0, ge=0, le=5)
    portion_control_motivation: int = Field(default=0, ge=0, le=5)
    habit_change_readiness: tuple[str, ...] = ()
    nutrient_deficiencies: tuple[str, ...] = ()
    ingredient_affinities: dict[str, float] = Field(default_factory=dict)
    successful_recipe_ids: tuple[str, ...] = ()
    failed_recipe_ids: tuple[str, ...] = ()
    recipe_ratings: dict[str, tuple[int, ...]] = Field(default_factory=dict)

    @field_validator("allergies", "appliances", "cuisine_preferences", mode="before")
    @classmethod
    def _normalize_names(cls, value: Any) -> tuple[str, ...]:
        if not value:
            return ()
        seen: dict[str, None] = {}
        for item in value:
            name = normalize_name(str(item))
            if name:
                seen.setdefault(name, None)
        return tuple(seen)

    @field_validator("ingredient_affinities", mode="before")
    @classmethod
    def _normalize_affinities(cls, value: Any) -> dict[str, float]:
        if not value:
            return {}
        merged: dict[str, float] = {}
        for name, score in dict(value).items():
            key = normalize_name(str(name))
            if key:
                merged[key] = merged.get(key, 0.0) + float(score)
        return merged

    @property
    def liked_ingredients(self) -> dict[str, float]:
        return {name: score for name, score in self.ingredient_affinities.items() if score > 0}

    @property
    def disliked_ingredients(self) -> dict[str, float]:
        return {name: score for name, score in self.ingredient_affinities.items() if score < 0}

    @property
    def conditions(self) -> tuple[HealthCondition, ...]:
        return tuple(entry.condition for entry in self.health_conditions)


@dataclass(frozen=True, slots=True)
class IngredientLine:
    name: str
    amount: float | None = None
    unit: str | None = None


@dataclass(frozen=True, slots=True)
class RecipeCandidate:
    """A recipe as seen by retrieval and ranking; immutable, use ``dataclasses.replace``.

    ``source`` records which store produced the record; vector-only records
    carry whatever metadata the vector index holds and may lack nutrition.
    """

    id: str
    name: str
    description: str | None = None
    prep_minutes: int = 0
    cook_minutes: int = 0
    total_minutes: int = 0
    servings: int = 1
    complexity: int = 3
    cost_tier: str | None = None
    cuisine: str | None = None
    appliances: tuple[str, ...] = ()
    ingredients: tuple[IngredientLine, ...] = ()
    steps: tuple[str, ...] = ()
    tags: frozenset[str] = frozenset()
    nutrition: dict[str, float] | None = None
    average_rating: float | None = None
    rating_count: int = 0
    completion_rate: float | None = None
    source: str = "relational"
    distance: float | None = None

    @property
    def ingredient_names(self) -> tuple[str, ...]:
        return tuple(normalize_name(line.name) for line in self.ingredients)


@dataclass(frozen=True, slots=True)
class HealthFilter:
    """Importance of a nutrient and how much a search may bend on it."""

    importance: float
    flexibility: float


@dataclass(frozen=True, slots=True)
class SearchParameters:
    """Per-query retrieval parameters derived from a profile and expansion."""

    expansion: float
    max_prep_time: float
    max_cook_time: float
    max_complexity: float
    health_filters: dict[str, HealthFilter] = field(default_factory=dict)
    ingredient_weights: dict[str, float] = field(default_factory=dict)
    appliance_options: tuple[str, ...] = ()
    preferred_cuisines: tuple[str, ...] = ()
    cuisine_flexibility: float = 0.0
    excluded_ingredients: tuple[str, ...] = ()
    preferred_spice_blends: tuple[str, ...] = ()
    micronutrient_priority: tuple[str, ...] = ()
    batch_cooking_bonus: float = 0.0

    @property
    def suppressed_ingredients(self) -> tuple[str, ...]:
        """Allergens plus every ingredient weighted negatively (dislikes)."""
        negative = (name for name, weight in self.ingredient_weights.items() if weight < 0)
        return tuple(dict.fromkeys((*self.excluded_ingredients, *negative)))

    @property
    def vector_result_count(self) -> int:
        return int(20 + 30 * self.expansion)

    @property
    def vector_radius(self) -> float:
        return 0.3 + 0.4 * self.expansion

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging or queue transport."""
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SearchParameters":
        data = dict(payload)
        data["health_filters"] = {
            name: HealthFilter(**values) for name, values in (data.get("health_filters") or {}).items()
        }
        for key in (
            "appliance_options",
            "preferred_cuisines",
            "excluded_ingredients",
            "preferred_spice_blends",
            "micronutrient_priority",
        ):
            data[key] = tuple(data.get(key) or ())
        return cls(**data)


@dataclass(frozen=True, slots=True)
class SubScores:
    health: float
    preference: float
    behavioral: float
    complexity: float
    historical: float
    novelty: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RankedCandidate:
    recipe: RecipeCandidate
    personalized_score: float
    sub_scores: SubScores


RankingStatus = Literal["ok", "empty", "unavailable"]


@dataclass(slots=True)
class RetrievalOutcome:
    candidates: list[RecipeCandidate]
    sources: tuple[str, ...]
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


@dataclass(frozen=True, slots=True)
class RankingResult:
    """What ``rank`` hands back to the assistant or results UI.

    Frozen because cached results are shared between callers.
    """

    status: RankingStatus
    candidates: tuple[RankedCandidate, ...]
    expansion: float | None = None
    parameters: SearchParameters | None = None
    sources: tuple[str, ...] = ()
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)
