from . import (
    interaction_service,
    profile_service,
    quality_service,
    recipe_service,
    recommendation_service,
    user_service,
)

__all__ = [
    "interaction_service",
    "profile_service",
    "quality_service",
    "recipe_service",
    "recommendation_service",
    "user_service",
]
"""Service-layer helpers for API operations."""
