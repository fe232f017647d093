"""Import all models here so metadata is complete before create_all."""

from flavor_monk.db.base_class import Base
from flavor_monk.models import interaction, recipe, user  # noqa: F401

__all__ = ["Base"]
