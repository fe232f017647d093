"""Shared helpers and fakes for API and service tests."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.llm.base import LLMCompletion
from flavor_monk.models.recipe import Recipe
from flavor_monk.recommendation.vector_store import VectorHit
from flavor_monk.services import recipe_service
from flavor_monk.utils.http import ExternalAPIError


@dataclass(slots=True)
class AuthContext:
    """Authenticated client context for API tests."""

    client: AsyncClient
    user: dict[str, Any]
    email: str
    password: str

    @property
    def user_id(self) -> str:
        return str(self.user["id"])


async def register_and_login(client: AsyncClient, *, prefix: str = "user") -> AuthContext:
    """Register and log in a new user, returning the auth context."""
    suffix = uuid.uuid4().hex[:8]
    email = f"{prefix}_{suffix}@example.com"
    password = "supersecret123"
    creds = {"email": email, "password": password, "display_name": f"{prefix.title()} {suffix}"}

    register_res = await client.post("/api/auth/register", json=creds)
    assert register_res.status_code == 200
    user = register_res.json()["user"]

    login_res = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert login_res.status_code == 200

    return AuthContext(client=client, user=user, email=email, password=password)


def questionnaire_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "primary_goal": "general_health",
        "health_conditions": [],
        "allergies": [],
        "cooking_skill": 3,
        "max_prep_time": 30,
        "appliances": ["oven", "stovetop"],
        "cuisine_preferences": ["italian"],
    }
    payload.update(overrides)
    return payload


def recipe_payload(name: str | None = None, **overrides: Any) -> dict[str, Any]:
    """A recipe in the seed file layout, easy enough for any profile."""
    payload: dict[str, Any] = {
        "name": name or f"Test Recipe {uuid.uuid4().hex[:6]}",
        "description": "A simple weeknight dish.",
        "prep_minutes": 10,
        "cook_minutes": 15,
        "servings": 2,
        "complexity": 2,
        "cuisine": "italian",
        "appliances": ["stovetop"],
        "ingredients": [
            {"name": "tomato", "amount": 2, "unit": "whole"},
            {"name": "basil", "amount": 5, "unit": "leaves"},
            {"name": "olive oil", "amount": 1, "unit": "tbsp"},
        ],
        "steps": ["Chop the tomato.", "Warm everything through."],
        "tags": {"dietary": ["vegetarian"]},
        "nutrition": {"calories": 320, "protein_g": 9, "fiber_g": 6, "sodium_mg": 300, "sugar_g": 6},
    }
    payload.update(overrides)
    return payload


async def create_recipe(session: AsyncSession, name: str | None = None, **overrides: Any) -> Recipe:
    return await recipe_service.create_recipe(session, recipe_payload(name, **overrides))


@dataclass
class FakeVectorStore:
    """Stands in for the Chroma index; returns canned hits or raises ``error``."""

    hits: list[VectorHit] = field(default_factory=list)
    error: Exception | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def query_similar(self, text: str, k: int, filters: dict[str, Any] | None = None) -> list[VectorHit]:
        self.calls.append({"text": text, "k": k, "filters": filters})
        if self.error is not None:
            raise self.error
        return list(self.hits[:k])

    def point_at(self, *recipes: Recipe, distance: float = 0.1) -> None:
        """Return ``recipes`` as hits, closest first, in the given order."""
        self.hits = [
            VectorHit(recipe_id=str(recipe.id), distance=distance + index * 0.01)
            for index, recipe in enumerate(recipes)
        ]


@dataclass
class FakeProvider:
    """Completion provider returning ``reply``; raises ``ExternalAPIError`` when ``fail`` is set."""

    reply: str = "ok"
    name: str = "local"
    cost: float = 0.0
    fail: bool = False
    prompts: list[str] = field(default_factory=list)

    async def complete(
        self, prompt: str, *, system: str | None = None, max_tokens: int | None = None
    ) -> LLMCompletion:
        self.prompts.append(prompt)
        if self.fail:
            raise ExternalAPIError(f"{self.name} provider down")
        return LLMCompletion(text=self.reply, model=f"{self.name}-model", cost=self.cost)
