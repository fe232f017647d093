from flavor_monk.models.interaction import INTERACTION_FLAGS, RecipeFeedback, RecipeInteraction
from flavor_monk.models.recipe import (
    ArchivedRecipe,
    NutritionFacts,
    Recipe,
    RecipeAppliance,
    RecipeIngredient,
    RecipeStep,
    RecipeTag,
    TagCategory,
)
from flavor_monk.models.user import (
    BudgetTier,
    Goal,
    HealthCondition,
    IngredientAffinity,
    Severity,
    User,
    UserHealthCondition,
    UserProfile,
)

__all__ = [
    "ArchivedRecipe",
    "BudgetTier",
    "Goal",
    "HealthCondition",
    "INTERACTION_FLAGS",
    "IngredientAffinity",
    "NutritionFacts",
    "Recipe",
    "RecipeAppliance",
    "RecipeFeedback",
    "RecipeIngredient",
    "RecipeInteraction",
    "RecipeStep",
    "RecipeTag",
    "Severity",
    "TagCategory",
    "User",
    "UserHealthCondition",
    "UserProfile",
]
"""SQLAlchemy ORM models for the Flavor Monk API."""
