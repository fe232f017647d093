from __future__ import annotations

import pytest

from flavor_monk.api import deps
from flavor_monk.services import recipe_service
from flavor_monk.tests.utils import create_recipe, questionnaire_payload, register_and_login


async def _setup(client, session, vector_store, **answers):
    await register_and_login(client, prefix="cook")
    response = await client.put("/api/me/questionnaire", json=questionnaire_payload(**answers))
    assert response.status_code == 200
    pasta = await create_recipe(session, "Tomato Basil Pasta")
    risotto = await create_recipe(session, "Mushroom Risotto", complexity=3)
    satay = await create_recipe(
        session, "Peanut Satay", ingredients=[{"name": "peanut butter", "amount": 3, "unit": "tbsp"}]
    )
    vector_store.point_at(satay, risotto, pasta)
    return pasta, risotto, satay


@pytest.mark.asyncio
async def test_recommendations_require_auth(client):
    response = await client.post("/api/recommendations", json={"query": "pasta"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_recommendations_rank_catalog(client, session, vector_store):
    pasta, risotto, satay = await _setup(client, session, vector_store, allergies=["peanut"])

    response = await client.post(
        "/api/recommendations", json={"query": "something quick", "intent_strength": 0.8}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["degraded"] is False
    assert body["sources"] == ["vector", "relational"]
    assert 0.0 <= body["expansion"] <= 1.0
    ids = [entry["recipe"]["id"] for entry in body["candidates"]]
    assert str(satay.id) not in ids
    assert set(ids) == {str(pasta.id), str(risotto.id)}
    scores = [entry["personalized_score"] for entry in body["candidates"]]
    assert scores == sorted(scores, reverse=True)
    assert set(body["candidates"][0]["sub_scores"]) == {
        "health",
        "preference",
        "behavioral",
        "complexity",
        "historical",
        "novelty",
    }
    assert all(entry["sub_scores"]["historical"] == 0.5 for entry in body["candidates"])


@pytest.mark.asyncio
async def test_recommendations_respect_limit(client, session, vector_store):
    await _setup(client, session, vector_store)
    response = await client.post("/api/recommendations", json={"query": "dinner", "limit": 1})
    assert len(response.json()["candidates"]) == 1


@pytest.mark.asyncio
async def test_vector_outage_degrades(client, session, vector_store):
    await _setup(client, session, vector_store)
    vector_store.error = RuntimeError("chroma down")

    response = await client.post("/api/recommendations", json={"query": "dinner"})

    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is True
    assert body["failures"] == {"vector": "chroma down"}
    assert body["candidates"]


@pytest.mark.asyncio
async def test_total_outage_is_503_not_empty(client, session, vector_store, monkeypatch):
    await _setup(client, session, vector_store)
    vector_store.error = RuntimeError("chroma down")

    async def _broken(*args, **kwargs):
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(recipe_service, "find_recipes", _broken)

    response = await client.post("/api/recommendations", json={"query": "dinner"})

    assert response.status_code == 503
    detail = response.json()["detail"]
    assert detail["status"] == "unavailable"
    assert set(detail["failures"]) == {"vector", "relational"}


@pytest.mark.asyncio
async def test_no_matches_is_empty_success(client, vector_store):
    await register_and_login(client, prefix="cook")

    response = await client.post("/api/recommendations", json={"query": "anything"})

    assert response.status_code == 200
    assert response.json()["status"] == "empty"
    assert response.json()["candidates"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"query": ""}, {"query": "pasta", "intent_strength": 1.2}, {}])
async def test_recommendations_validate_input(client, payload):
    await register_and_login(client, prefix="cook")
    response = await client.post("/api/recommendations", json=payload)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_blank_query_after_trim_is_bad_request(client):
    await register_and_login(client, prefix="cook")
    response = await client.post("/api/recommendations", json={"query": "   "})
    assert response.status_code == 400


def test_vector_store_dependency_retries_after_failed_construction(monkeypatch):
    attempts = []
    store = object()

    def _from_settings():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConnectionError("chroma not reachable")
        return store

    monkeypatch.setattr(deps, "_vector_store", None)
    monkeypatch.setattr(deps.RecipeVectorStore, "from_settings", staticmethod(_from_settings))

    assert deps.get_vector_store() is None
    assert deps.get_vector_store() is store
    assert deps.get_vector_store() is store
    assert len(attempts) == 2
