"""Fixed lookup tables behind expansion, parameter building, and ranking.

Every table is keyed by a closed enum so an unknown condition or goal is
rejected when the profile is validated instead of silently matching nothing.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from flavor_monk.models.user import Goal, HealthCondition


class MotivationBundle(str, enum.Enum):
    LOW = "low_motivation"
    HIGH = "high_motivation"


class Specificity(float, enum.Enum):
    """Query specificity scores; evaluated in declaration order."""
    NARROW = 0.2
    MODERATE = 0.5
    BROAD = 0.8


SPECIFICITY_MARKERS: tuple[tuple[Specificity, tuple[str, ...]], ...] = (
    (Specificity.NARROW, ("exactly", "specific", "only", "must")),
    (Specificity.MODERATE, ("similar", "like", "around", "about")),
    (Specificity.BROAD, ("any", "something", "ideas", "suggestions")),
)
DEFAULT_SPECIFICITY = 0.5

EXPANSION_WEIGHTS = MappingProxyType(
    {
        "query_specificity": 0.3,
        "constraint_strictness": 0.25,
        "exploratory_intent": 0.2,
        "user_experience": 0.15,
        "time_pressure": 0.1,
    }
)

CONDITION_NUTRIENTS: Mapping[HealthCondition, Mapping[str, float]] = MappingProxyType(
    {
        HealthCondition.DIABETES: {"carbs": 0.9, "sugar": 0.95, "fiber": 0.8, "glycemic_index": 0.85},
        HealthCondition.HEART_DISEASE: {"saturated_fat": 0.9, "sodium": 0.85, "omega3": 0.8},
        HealthCondition.PCOS: {"glycemic_index": 0.9, "anti_inflammatory": 0.85, "protein": 0.7},
        HealthCondition.IBS: {"fodmap": 0.95, "fiber": 0.7, "fermented": 0.6},
        HealthCondition.ARTHRITIS: {"anti_inflammatory": 0.9, "omega3": 0.8},
    }
)

GOAL_NUTRIENTS: Mapping[Goal, Mapping[str, float]] = MappingProxyType(
    {
        Goal.WEIGHT_LOSS: {"calories": 0.9, "protein": 0.7, "fiber": 0.8, "satiety": 0.85},
        Goal.MUSCLE_GAIN: {"protein": 0.95, "calories": 0.7, "carbs": 0.8, "timing": 0.6},
        Goal.ANTI_AGING: {"antioxidants": 0.9, "omega3": 0.8, "micronutrients": 0.85},
    }
)

BEHAVIORAL_WEIGHTS: Mapping[MotivationBundle, Mapping[str, float]] = MappingProxyType(
    {
        MotivationBundle.LOW: {"simplicity": 0.9, "time": 0.85, "familiarity": 0.7},
        MotivationBundle.HIGH: {"variety": 0.8, "complexity": 0.6, "novelty": 0.7},
    }
)

APPLIANCE_ALTERNATIVES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "oven": ("air fryer", "toaster oven"),
        "stovetop": ("electric skillet", "hot plate"),
        "instant pot": ("slow cooker", "stovetop pressure cooker"),
        "air fryer": ("oven", "convection oven"),
    }
)

CUISINE_INGREDIENTS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "italian": ("tomato", "basil", "garlic", "olive oil", "parmesan"),
        "mexican": ("lime", "cilantro", "chili", "cumin", "avocado"),
        "chinese": ("soy sauce", "ginger", "sesame", "rice wine", "scallion"),
        "indian": ("turmeric", "cumin", "coriander", "garam masala", "yogurt"),
    }
)

ANTI_INFLAMMATORY_SPICE_BLENDS = ("golden_antiinflammatory", "green_cardio")


@dataclass(frozen=True, slots=True)
class NutrientTarget:
    """Per-serving target for a measurable nutrient.

    ``limit`` targets reward staying at or below ``value``; ``floor`` targets
    reward reaching it.
    """

    column: str
    value: float
    kind: str  # "limit" | "floor"


NUTRIENT_TARGETS: Mapping[str, NutrientTarget] = MappingProxyType(
    {
        "carbs": NutrientTarget("carbs_g", 45.0, "limit"),
        "sugar": NutrientTarget("sugar_g", 10.0, "limit"),
        "fiber": NutrientTarget("fiber_g", 8.0, "floor"),
        "glycemic_index": NutrientTarget("glycemic_index", 55.0, "limit"),
        "saturated_fat": NutrientTarget("saturated_fat_g", 5.0, "limit"),
        "sodium": NutrientTarget("sodium_mg", 600.0, "limit"),
        "omega3": NutrientTarget("omega3_g", 1.0, "floor"),
        "protein": NutrientTarget("protein_g", 25.0, "floor"),
        "calories": NutrientTarget("calories", 600.0, "limit"),
    }
)

# Nutrients only observable through recipe tags.
TAG_NUTRIENTS: Mapping[str, str] = MappingProxyType(
    {
        "anti_inflammatory": "anti_inflammatory",
        "fodmap": "ibs_fodmap_low",
        "fermented": "fermented",
        "antioxidants": "antioxidant_rich",
        "satiety": "high_fiber",
    }
)

BATCH_COOKING_TAG = "batch_cookable"
