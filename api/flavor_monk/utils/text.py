"""Text normalization helpers for ingredients, queries, and recipe slugs."""

from __future__ import annotations

import re

from slugify import slugify


def normalize_name(value: str | None) -> str:
    """Lowercase and collapse whitespace so names compare consistently."""
    if not value:
        return ""
    return " ".join(value.lower().split())


def normalize_query(value: str | None) -> str:
    """Reduce free text to a stable cache key (case, punctuation, spacing)."""
    return slugify(value or "", separator=" ")


def recipe_slug(name: str, suffix: str | None = None) -> str:
    """Slugify recipe names with an optional disambiguating suffix."""
    base = slugify(name)
    if suffix:
        return f"{base}-{slugify(suffix)}"
    return base


def mentions_ingredient(ingredient_name: str, needle: str, *, whole_word: bool = False) -> bool:
    """Return True when a normalized ingredient mentions the normalized needle.

    Substring matching by default, so "pea" flags "peanut oil" as well. With
    ``whole_word`` the needle must stand as its own word ("rice" does not match
    "licorice"); a plural "s"/"es" ending still counts.
    """
    haystack = normalize_name(ingredient_name)
    target = normalize_name(needle)
    if not target:
        return False
    if not whole_word:
        return target in haystack
    return re.search(r"\b" + re.escape(target) + r"(?:e?s)?\b", haystack) is not None
