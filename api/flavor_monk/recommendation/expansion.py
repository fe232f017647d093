"""Expansion level: how broad (1) or narrow (0) a recommendation search should be."""

from __future__ import annotations

from flavor_monk.recommendation.base import ProfileSnapshot
from flavor_monk.recommendation.profile import constraint_strictness
from flavor_monk.recommendation.weights import DEFAULT_SPECIFICITY, EXPANSION_WEIGHTS, SPECIFICITY_MARKERS

EXPERIENCED_SUCCESS_COUNT = 50
TIME_PRESSURE_MINUTES = 20


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def query_specificity(query: str) -> float:
    """Map marker words to a specificity score; the last matching category wins.

    Markers match anywhere in the lowercased query, inside longer words too.
    """
    text = (query or "").lower()
    score = DEFAULT_SPECIFICITY
    for level, markers in SPECIFICITY_MARKERS:
        if any(marker in text for marker in markers):
            score = float(level.value)
    return score


def expansion_factors(query: str, profile: ProfileSnapshot, intent_strength: float) -> dict[str, float]:
    """Return the individual expansion factors, each in [0, 1]."""
    return {
        "query_specificity": query_specificity(query),
        "constraint_strictness": constraint_strictness(profile),
        "exploratory_intent": 1.0 - _clamp(intent_strength),
        "user_experience": min(len(profile.successful_recipe_ids) / EXPERIENCED_SUCCESS_COUNT, 1.0),
        "time_pressure": 0.3 if profile.max_prep_time < TIME_PRESSURE_MINUTES else 0.7,
    }


def calculate_expansion(query: str, profile: ProfileSnapshot, intent_strength: float) -> float:
    factors = expansion_factors(query, profile, intent_strength)
    expansion = sum(factors[name] * weight for name, weight in EXPANSION_WEIGHTS.items())
    return _clamp(expansion)
