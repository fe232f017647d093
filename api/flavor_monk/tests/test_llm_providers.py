from __future__ import annotations

import pytest

from flavor_monk.llm import providers
from flavor_monk.llm.prompts import build_assistant_prompt
from flavor_monk.models.user import Goal
from flavor_monk.recommendation.base import ProfileSnapshot, RankedCandidate, RecipeCandidate, SubScores
from flavor_monk.utils.http import ExternalAPIError


def _capture(monkeypatch, response: dict) -> list[dict]:
    calls: list[dict] = []

    async def _fake_post_json(url, payload, *, headers=None, timeout=30.0, attempts=3):
        calls.append({"url": url, "payload": payload, "headers": headers})
        return response

    monkeypatch.setattr(providers, "post_json", _fake_post_json)
    return calls


@pytest.mark.asyncio
async def test_ollama_generate_request(monkeypatch):
    calls = _capture(monkeypatch, {"response": "  Try lentils.  ", "prompt_eval_count": 12, "eval_count": 30})
    provider = providers.OllamaProvider("http://ollama:11434/", "llama-test")

    completion = await provider.complete("dinner?", system="be kind", max_tokens=64)

    assert completion.text == "Try lentils."
    assert completion.cost == 0.0
    assert completion.output_tokens == 30
    assert calls[0]["url"] == "http://ollama:11434/api/generate"
    assert calls[0]["payload"] == {
        "model": "llama-test",
        "prompt": "dinner?",
        "stream": False,
        "system": "be kind",
        "options": {"num_predict": 64},
    }


@pytest.mark.asyncio
async def test_ollama_empty_reply_is_an_error(monkeypatch):
    _capture(monkeypatch, {"response": "   "})
    with pytest.raises(ExternalAPIError):
        await providers.OllamaProvider("http://ollama:11434", "llama-test").complete("hi")


@pytest.mark.asyncio
async def test_anthropic_request_and_usage_cost(monkeypatch):
    calls = _capture(
        monkeypatch,
        {
            "content": [{"type": "text", "text": "Omega-3 "}, {"type": "tool_use"}, {"type": "text", "text": "helps."}],
            "usage": {"input_tokens": 100, "output_tokens": 400},
        },
    )
    provider = providers.AnthropicProvider("sk-test", "claude-test", cost_per_1k_tokens=0.015)

    completion = await provider.complete("question", system="sys")

    assert completion.text == "Omega-3 helps."
    assert completion.cost == pytest.approx(0.0075)
    request = calls[0]
    assert request["headers"]["x-api-key"] == "sk-test"
    assert request["headers"]["anthropic-version"] == providers.ANTHROPIC_VERSION
    assert request["payload"]["messages"] == [{"role": "user", "content": "question"}]
    assert request["payload"]["system"] == "sys"
    assert request["payload"]["max_tokens"] == providers.DEFAULT_MAX_TOKENS


@pytest.mark.asyncio
async def test_anthropic_estimates_cost_without_usage(monkeypatch):
    _capture(monkeypatch, {"content": [{"type": "text", "text": "ok"}]})
    provider = providers.AnthropicProvider("sk-test", "claude-test", cost_per_1k_tokens=1.0)

    completion = await provider.complete("x" * 400)

    assert completion.cost == pytest.approx(providers.estimate_tokens("x" * 400) / 1000)


def test_anthropic_requires_key():
    with pytest.raises(ValueError):
        providers.AnthropicProvider("")


def test_estimate_tokens_has_a_floor():
    assert providers.estimate_tokens("") == 1
    assert providers.estimate_tokens("x" * 400) == 200


def _ranked(name: str) -> RankedCandidate:
    recipe = RecipeCandidate(id=name, name=name, total_minutes=25, complexity=2, cuisine="italian")
    scores = SubScores(health=0.5, preference=0.5, behavioral=0.5, complexity=0.5, historical=0.5, novelty=0.5)
    return RankedCandidate(recipe=recipe, personalized_score=0.5, sub_scores=scores)


def test_assistant_prompt_carries_profile_and_top_matches():
    profile = ProfileSnapshot(
        primary_goal=Goal.WEIGHT_LOSS,
        cooking_skill=2,
        allergies=["peanut"],
        ingredient_affinities={"salmon": 2.0, "cilantro": -1.0},
    )
    prompt = build_assistant_prompt(
        "  What's quick tonight? ",
        profile,
        [_ranked(name) for name in ("A", "B", "C", "D")],
        [RecipeCandidate(id="fav", name="Favourite Dal", prep_minutes=10, cook_minutes=20)],
    )

    assert "Primary goal: weight loss" in prompt
    assert "Allergies (never suggest): peanut" in prompt
    assert "Loves: salmon" in prompt
    assert "Avoids: cilantro" in prompt
    assert "Favourite Dal (30 min" in prompt
    assert "3. C (25 min, complexity 2/5, italian)" in prompt
    assert "4. D" not in prompt
    assert "User message: What's quick tonight?" in prompt


def test_assistant_prompt_for_blank_profile_is_just_the_message():
    prompt = build_assistant_prompt("hi", ProfileSnapshot())
    assert prompt.startswith("User message: hi")
