from .feedback import learn_preferences_job, recipe_metrics_job
from .maintenance import recipe_quality_job, reindex_recipes_job

__all__ = [
    "learn_preferences_job",
    "recipe_metrics_job",
    "recipe_quality_job",
    "reindex_recipes_job",
]
"""Background job modules for RQ workers and schedulers."""
