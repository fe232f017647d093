from __future__ import annotations

import asyncio

import pytest

from flavor_monk.models.user import HealthCondition
from flavor_monk.recommendation.base import ConditionProfile, ProfileSnapshot
from flavor_monk.recommendation.errors import BackendUnavailableError
from flavor_monk.recommendation.observability import StoreMonitor
from flavor_monk.recommendation.parameters import build_search_parameters
from flavor_monk.recommendation.retriever import HybridRetriever, build_relational_filters
from flavor_monk.recommendation.vector_store import VectorHit
from flavor_monk.tests.utils import FakeVectorStore, create_recipe

PROFILE = ProfileSnapshot(user_id="u1", cooking_skill=3, max_prep_time=30)


def _retriever(session, store, **kwargs) -> HybridRetriever:
    return HybridRetriever(session, store, monitor=StoreMonitor(), **kwargs)


@pytest.mark.asyncio
async def test_merge_puts_vector_order_first_then_relational_only(session):
    apple = await create_recipe(session, "Apple Crumble")
    bean = await create_recipe(session, "Bean Stew")
    carrot = await create_recipe(session, "Carrot Soup")
    store = FakeVectorStore()
    store.point_at(carrot, apple)

    parameters = build_search_parameters(PROFILE, 0.5)
    outcome = await _retriever(session, store).retrieve("soup", PROFILE, parameters)

    assert [candidate.name for candidate in outcome.candidates] == ["Carrot Soup", "Apple Crumble", "Bean Stew"]
    assert outcome.sources == ("vector", "relational")
    assert outcome.degraded is False
    assert outcome.candidates[0].distance == pytest.approx(0.1)
    assert outcome.candidates[2].distance is None
    assert store.calls[0]["k"] == parameters.vector_result_count


@pytest.mark.asyncio
async def test_hits_outside_radius_are_dropped(session):
    near = await create_recipe(session, "Near Match")
    far = await create_recipe(session, "Far Match", complexity=5)
    store = FakeVectorStore(
        hits=[VectorHit(recipe_id=str(far.id), distance=0.95), VectorHit(recipe_id=str(near.id), distance=0.2)]
    )

    outcome = await _retriever(session, store).retrieve("x", PROFILE, build_search_parameters(PROFILE, 0.0))

    # Far Match is too complex for the relational query and too distant for the vector one.
    assert [candidate.name for candidate in outcome.candidates] == ["Near Match"]


@pytest.mark.asyncio
async def test_vector_outage_degrades_to_relational(session):
    await create_recipe(session, "Tomato Pasta")
    store = FakeVectorStore(error=RuntimeError("chroma down"))
    monitor = StoreMonitor()

    outcome = await HybridRetriever(session, store, monitor=monitor).retrieve(
        "pasta", PROFILE, build_search_parameters(PROFILE, 0.5)
    )

    assert [candidate.name for candidate in outcome.candidates] == ["Tomato Pasta"]
    assert outcome.sources == ("relational",)
    assert outcome.failures == {"vector": "chroma down"}
    stats = await monitor.snapshot()
    assert stats["vector"]["errors"] == 1
    assert stats["vector"]["degraded_retrievals"] == 1
    assert stats["relational"]["successes"] == 1


@pytest.mark.asyncio
async def test_relational_outage_keeps_thin_vector_candidates():
    store = FakeVectorStore(
        hits=[
            VectorHit(
                recipe_id="abc",
                distance=0.1,
                metadata={"name": "Index Only", "complexity": 2, "ingredients": "tomato, basil"},
            ),
            VectorHit(
                recipe_id="peanut",
                distance=0.2,
                metadata={"name": "Satay", "complexity": 2, "ingredients": "peanut butter, chicken"},
            ),
        ]
    )
    profile = ProfileSnapshot(user_id="u1", cooking_skill=3, max_prep_time=30, allergies=["peanut"])

    outcome = await _retriever(None, store).retrieve("dinner", profile, build_search_parameters(profile, 0.5))

    assert [candidate.name for candidate in outcome.candidates] == ["Index Only"]
    assert outcome.candidates[0].source == "vector"
    assert outcome.candidates[0].ingredient_names == ("tomato", "basil")
    assert outcome.sources == ("vector",)
    assert "relational" in outcome.failures


@pytest.mark.asyncio
async def test_both_stores_down_raises():
    store = FakeVectorStore(error=RuntimeError("chroma down"))
    with pytest.raises(BackendUnavailableError) as excinfo:
        await _retriever(None, store).retrieve("dinner", PROFILE, build_search_parameters(PROFILE, 0.5))
    assert set(excinfo.value.failures) == {"vector", "relational"}


@pytest.mark.asyncio
async def test_slow_vector_store_times_out(session):
    await create_recipe(session, "Quick Salad")

    class SlowStore(FakeVectorStore):
        async def query_similar(self, text, k, filters=None):
            await asyncio.sleep(1)
            return []

    outcome = await _retriever(session, SlowStore(), timeout_seconds=0.01).retrieve(
        "salad", PROFILE, build_search_parameters(PROFILE, 0.5)
    )
    assert "vector" in outcome.failures
    assert [candidate.name for candidate in outcome.candidates] == ["Quick Salad"]


@pytest.mark.asyncio
async def test_allergens_and_wrong_appliances_are_excluded(session):
    await create_recipe(
        session,
        "Peanut Noodles",
        ingredients=[{"name": "Peanut Butter", "amount": 2, "unit": "tbsp"}, {"name": "noodles"}],
    )
    await create_recipe(session, "Air Fried Tofu", appliances=["air fryer"])
    await create_recipe(session, "Stovetop Rice", appliances=["stovetop"])
    profile = ProfileSnapshot(
        user_id="u1", cooking_skill=3, max_prep_time=30, allergies=["peanut"], appliances=["stovetop"]
    )

    outcome = await _retriever(session, FakeVectorStore()).retrieve(
        "dinner", profile, build_search_parameters(profile, 0.2)
    )

    assert [candidate.name for candidate in outcome.candidates] == ["Stovetop Rice"]


@pytest.mark.asyncio
@pytest.mark.parametrize("expansion", [0.0, 1.0])
async def test_disliked_ingredients_are_excluded_at_any_expansion(session, expansion):
    await create_recipe(session, "Cilantro Rice", ingredients=[{"name": "cilantro"}, {"name": "rice"}])
    await create_recipe(session, "Plain Rice", ingredients=[{"name": "rice"}])
    profile = ProfileSnapshot(
        user_id="u1", cooking_skill=3, max_prep_time=30, ingredient_affinities={"cilantro": -1.0}
    )
    store = FakeVectorStore()

    outcome = await _retriever(session, store).retrieve(
        "rice", profile, build_search_parameters(profile, expansion)
    )

    assert [candidate.name for candidate in outcome.candidates] == ["Plain Rice"]


def test_relational_filters_cap_limit_nutrients_and_lock_cuisine():
    profile = ProfileSnapshot(
        cooking_skill=3,
        max_prep_time=30,
        cuisine_preferences=["italian"],
        health_conditions=[ConditionProfile(condition=HealthCondition.HEART_DISEASE)],
    )
    narrow = build_relational_filters(build_search_parameters(profile, 0.0), limit=25)
    assert narrow.cuisines == ("italian",)
    assert narrow.limit == 25
    assert narrow.nutrient_ceilings["sodium_mg"] == pytest.approx(1200)
    assert narrow.nutrient_ceilings["saturated_fat_g"] == pytest.approx(10)
    assert "omega3_g" not in narrow.nutrient_ceilings

    wide = build_relational_filters(build_search_parameters(profile, 1.0))
    assert wide.cuisines == ()
    assert wide.nutrient_ceilings["sodium_mg"] == pytest.approx(1200 * 1.15)
