from __future__ import annotations

from importlib import resources
from typing import Any

import yaml


def load_recipe_catalog(name: str = "recipes") -> list[dict[str, Any]]:
    """Return the recipes stored in a bundled YAML catalog."""
    resource = resources.files(__name__).joinpath(f"{name}.yaml")
    if not resource.is_file():
        raise FileNotFoundError(f"No recipe catalog named {name}")
    data = yaml.safe_load(resource.read_text(encoding="utf-8")) or {}
    return list(data.get("recipes") or [])
