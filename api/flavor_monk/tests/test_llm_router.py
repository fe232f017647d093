from __future__ import annotations

from datetime import datetime, timezone

import pytest

from flavor_monk.llm.base import classify_query
from flavor_monk.llm.budget import DailyBudgetTracker
from flavor_monk.llm.router import FALLBACK_RESPONSES, LLMRouter, cache_key, needs_cloud
from flavor_monk.tests.utils import FakeProvider

COMPLEX_QUESTION = "What does the clinical evidence say about omega-3 and arthritis?"


def _router(local=None, cloud=None, *, budget: float = 1.0, **kwargs) -> LLMRouter:
    return LLMRouter(
        local or FakeProvider("local answer"),
        cloud,
        budget=DailyBudgetTracker(budget),
        cost_per_1k_tokens=0.015,
        **kwargs,
    )


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Give me a recipe for dinner", "recipe"),
        ("Help me with a meal plan for the week", "meal_plan"),
        ("Which vitamin am I missing?", "nutrition_science"),
        ("How to julienne carrots", "cooking_help"),
        ("Hello there", "general"),
    ],
)
def test_classify_query(text, expected):
    assert classify_query(text) == expected


def test_needs_cloud_matches_complex_patterns_only():
    assert needs_cloud(COMPLEX_QUESTION)
    assert needs_cloud("Explain iron BIOAVAILABILITY")
    assert not needs_cloud("quick pasta tonight")


def test_cache_key_ignores_case_and_spacing():
    assert cache_key("recipe", "Quick  Pasta ") == cache_key("recipe", "quick pasta")


@pytest.mark.asyncio
async def test_simple_questions_stay_local():
    cloud = FakeProvider("cloud answer", name="cloud", cost=0.01)
    router = _router(cloud=cloud)

    response = await router.route("What should I cook tonight?")

    assert response.provider == "local"
    assert response.text == "local answer"
    assert response.cost == 0.0
    assert cloud.prompts == []


@pytest.mark.asyncio
async def test_complex_questions_use_cloud_within_budget():
    cloud = FakeProvider("cloud answer", name="cloud", cost=0.02)
    router = _router(cloud=cloud)

    response = await router.route(COMPLEX_QUESTION)

    assert response.provider == "cloud"
    assert response.cost == 0.02
    assert router.budget.spent == pytest.approx(0.02)


@pytest.mark.asyncio
async def test_exhausted_budget_routes_locally():
    cloud = FakeProvider("cloud answer", name="cloud", cost=0.02)
    router = _router(cloud=cloud, budget=0.0)

    response = await router.route(COMPLEX_QUESTION)

    assert response.provider == "local"
    assert cloud.prompts == []


@pytest.mark.asyncio
async def test_cloud_failure_falls_back_to_local():
    cloud = FakeProvider(name="cloud", fail=True)
    router = _router(cloud=cloud)

    response = await router.route(COMPLEX_QUESTION)

    assert response.provider == "local"
    assert router.budget.spent == 0.0


@pytest.mark.asyncio
async def test_total_failure_returns_uncached_canned_reply():
    local = FakeProvider(fail=True)
    router = _router(local=local)

    first = await router.route("Give me a recipe with lentils")
    second = await router.route("Give me a recipe with lentils")

    assert first.provider == "fallback"
    assert first.text == FALLBACK_RESPONSES["recipe"]
    assert second.cached is False
    assert len(local.prompts) == 2

    general = await router.route("Which vitamin am I missing?")
    assert general.text == FALLBACK_RESPONSES["general"]


@pytest.mark.asyncio
async def test_repeat_questions_are_served_from_cache_for_free():
    cloud = FakeProvider("cloud answer", name="cloud", cost=0.05)
    router = _router(cloud=cloud)

    first = await router.route(COMPLEX_QUESTION)
    second = await router.route(COMPLEX_QUESTION.upper())

    assert first.cached is False
    assert second.cached is True
    assert second.cost == 0.0
    assert second.text == first.text
    assert len(cloud.prompts) == 1
    assert router.budget.spent == pytest.approx(0.05)


@pytest.mark.asyncio
async def test_enriched_prompts_are_cached_per_prompt():
    local = FakeProvider("local answer")
    router = _router(local=local)

    await router.route("dinner ideas", prompt="profile A\n\ndinner ideas")
    await router.route("dinner ideas", prompt="profile B\n\ndinner ideas")

    assert local.prompts == ["profile A\n\ndinner ideas", "profile B\n\ndinner ideas"]


def test_budget_resets_at_utc_midnight():
    now = [datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc)]
    tracker = DailyBudgetTracker(1.0, clock=lambda: now[0])

    tracker.record(0.9)
    assert tracker.can_spend(0.2) is False
    assert tracker.remaining == pytest.approx(0.1)

    now[0] = datetime(2026, 3, 2, 0, 1, tzinfo=timezone.utc)
    assert tracker.spent == 0.0
    assert tracker.can_spend(0.2) is True
    assert tracker.snapshot()["day"] == "2026-03-02"


def test_budget_ignores_non_positive_spend():
    tracker = DailyBudgetTracker(1.0)
    tracker.record(0.0)
    tracker.record(-1.0)
    assert tracker.spent == 0.0
