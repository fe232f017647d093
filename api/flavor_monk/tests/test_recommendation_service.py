from __future__ import annotations

import dataclasses
import math
import uuid

import pytest

from flavor_monk.recommendation.errors import InputError
from flavor_monk.recommendation.observability import StoreMonitor
from flavor_monk.schema.questionnaire import QuestionnaireSubmission
from flavor_monk.services import profile_service, recipe_service, recommendation_service, user_service
from flavor_monk.tests.utils import FakeVectorStore, create_recipe, questionnaire_payload
from flavor_monk.utils.cache import LRUCache


async def _user_with_profile(session, **answers):
    user = await user_service.create_user(session, f"cook_{uuid.uuid4().hex[:6]}@example.com", "password123")
    await profile_service.save_questionnaire(
        session, user.id, QuestionnaireSubmission(**questionnaire_payload(**answers))
    )
    return user


async def _rank(session, store, user, query="pasta ideas", intent=0.5, *, cache=None):
    return await recommendation_service.rank(
        session,
        store,
        query,
        str(user.id),
        intent,
        cache=cache if cache is not None else LRUCache(16),
        monitor=StoreMonitor(),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("query", "intent"),
    [("", 0.5), ("   ", 0.5), (None, 0.5), ("pasta", 1.5), ("pasta", -0.1), ("pasta", math.nan), ("pasta", True)],
)
async def test_rank_rejects_bad_input(session, query, intent):
    user = await _user_with_profile(session)
    with pytest.raises(InputError):
        await _rank(session, FakeVectorStore(), user, query, intent)


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", ["", "not-a-uuid", str(uuid.uuid4())])
async def test_rank_rejects_unknown_users(session, user_id):
    with pytest.raises(InputError):
        await recommendation_service.rank(session, FakeVectorStore(), "pasta", user_id, 0.5, cache=LRUCache(4))


@pytest.mark.asyncio
async def test_rank_is_idempotent_and_cached(session):
    user = await _user_with_profile(session)
    for name in ("Tomato Pasta", "Basil Risotto", "Garlic Bread"):
        await create_recipe(session, name)
    cache: LRUCache = LRUCache(16)

    first = await _rank(session, FakeVectorStore(), user, cache=cache)
    second = await _rank(session, FakeVectorStore(), user, "  PASTA ideas ", cache=cache)
    assert second is first
    assert first.status == "ok"

    cache.clear()
    fresh = await _rank(session, FakeVectorStore(), user, cache=cache)
    assert [entry.recipe.id for entry in fresh.candidates] == [entry.recipe.id for entry in first.candidates]
    assert [entry.personalized_score for entry in fresh.candidates] == [
        entry.personalized_score for entry in first.candidates
    ]


@pytest.mark.asyncio
async def test_cached_results_cannot_be_altered_by_callers(session):
    user = await _user_with_profile(session)
    await create_recipe(session, "Tomato Pasta")
    cache: LRUCache = LRUCache(16)

    first = await _rank(session, FakeVectorStore(), user, cache=cache)
    top = first.candidates[0]
    with pytest.raises(dataclasses.FrozenInstanceError):
        top.personalized_score = 99.0
    with pytest.raises(dataclasses.FrozenInstanceError):
        top.recipe.name = "Renamed"
    with pytest.raises(AttributeError):
        first.candidates.append(top)

    again = await _rank(session, FakeVectorStore(), user, cache=cache)
    assert again.candidates == first.candidates
    assert again.candidates[0].recipe.name == "Tomato Pasta"


@pytest.mark.asyncio
async def test_empty_catalog_is_not_unavailable(session):
    user = await _user_with_profile(session)
    result = await _rank(session, FakeVectorStore(), user)
    assert result.status == "empty"
    assert result.candidates == ()
    assert result.degraded is False


@pytest.mark.asyncio
async def test_both_stores_down_reports_unavailable_without_caching(session, monkeypatch):
    user = await _user_with_profile(session)

    async def _broken(*args, **kwargs):
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(recipe_service, "find_recipes", _broken)
    cache: LRUCache = LRUCache(16)

    result = await _rank(session, FakeVectorStore(error=RuntimeError("chroma down")), user, cache=cache)

    assert result.status == "unavailable"
    assert result.candidates == ()
    assert set(result.failures) == {"vector", "relational"}
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_degraded_results_are_returned_but_not_cached(session):
    user = await _user_with_profile(session)
    await create_recipe(session, "Tomato Pasta")
    cache: LRUCache = LRUCache(16)

    result = await _rank(session, FakeVectorStore(error=RuntimeError("chroma down")), user, cache=cache)

    assert result.status == "ok"
    assert result.degraded is True
    assert result.sources == ("relational",)
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_allergen_recipes_are_filtered_out(session):
    user = await _user_with_profile(session, allergies=["Peanut"])
    await create_recipe(
        session, "Peanut Pasta", ingredients=[{"name": "peanut butter", "amount": 2, "unit": "tbsp"}]
    )
    safe = await create_recipe(session, "Tomato Pasta")

    result = await _rank(session, FakeVectorStore(), user, "something quick", 1.0)

    assert [entry.recipe.id for entry in result.candidates] == [str(safe.id)]


def test_invalidate_user_only_drops_that_user():
    cache: LRUCache = LRUCache(8)
    cache.put(("recommendation", "user-a", "pasta", 0.5), "a1")
    cache.put(("recipe", "user-a", "soup", 0.2), "a2")
    cache.put(("recommendation", "user-b", "pasta", 0.5), "b1")

    assert recommendation_service.invalidate_user("user-a", cache) == 2
    assert len(cache) == 1
    assert ("recommendation", "user-b", "pasta", 0.5) in cache
