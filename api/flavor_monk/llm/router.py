"""Local-first routing between completion providers under a daily cloud budget."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace

import httpx

from flavor_monk.core.config import settings
from flavor_monk.llm.base import LLMProvider, ProviderName, QueryType, classify_query
from flavor_monk.llm.budget import DailyBudgetTracker
from flavor_monk.llm.providers import AnthropicProvider, OllamaProvider, estimate_tokens
from flavor_monk.utils.cache import LRUCache
from flavor_monk.utils.http import ExternalAPIError

logger = logging.getLogger("flavor_monk.llm.router")

# Questions the local model tends to get wrong; only these may spend cloud budget.
COMPLEX_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"micronutrient.*interaction",
        r"clinical.*evidence",
        r"medical.*condition",
        r"drug.*food.*interaction",
        r"bioavailability",
        r"glycemic.*load.*calculation",
        r"nutrient.*deficiency.*analysis",
    )
)

SYSTEM_PROMPT = (
    "You are Flavor Monk, a warm and encouraging nutrition assistant with a grounding in "
    "culinary science. Give practical advice the user can act on tonight, and never "
    "recommend an ingredient the user is allergic to."
)

FALLBACK_RESPONSES: dict[str, str] = {
    "recipe": (
        "I'd be happy to help you find a recipe! Start with simple, nutritious meals that "
        "fit your cooking skills and the time you have."
    ),
    "meal_plan": (
        "Let's build a balanced plan: aim for variety, seasonal ingredients, and meals you "
        "can prep in advance."
    ),
    "general": "I'm here to help with your nutrition journey. What would you like to explore?",
}

PROVIDER_ERRORS = (ExternalAPIError, httpx.HTTPError)


@dataclass(frozen=True, slots=True)
class RoutedResponse:
    text: str
    provider: ProviderName
    query_type: QueryType
    cost: float = 0.0
    model: str | None = None
    cached: bool = False


def needs_cloud(text: str) -> bool:
    return any(pattern.search(text) for pattern in COMPLEX_PATTERNS)


def cache_key(query_type: str, text: str) -> tuple[str, str]:
    return query_type, " ".join(text.lower().split())


class LLMRouter:
    """Send each request to the cheapest provider able to answer it.

    Complex nutrition-science questions go to the cloud provider while the
    day's budget allows; everything else, and every cloud failure, goes to
    the local model. When both fail a canned reply is returned and not cached.
    """

    def __init__(
        self,
        local: LLMProvider,
        cloud: LLMProvider | None = None,
        *,
        budget: DailyBudgetTracker | None = None,
        cache_size: int | None = None,
        cost_per_1k_tokens: float | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.local = local
        self.cloud = cloud
        self.budget = budget or DailyBudgetTracker()
        self.cache: LRUCache[RoutedResponse] = LRUCache(
            settings.llm_cache_size if cache_size is None else cache_size
        )
        self.cost_per_1k_tokens = (
            settings.cloud_cost_per_1k_tokens if cost_per_1k_tokens is None else cost_per_1k_tokens
        )
        self.system_prompt = system_prompt

    @classmethod
    def from_settings(cls, budget: DailyBudgetTracker | None = None) -> "LLMRouter":
        cloud = AnthropicProvider(settings.anthropic_api_key) if settings.anthropic_api_key else None
        return cls(OllamaProvider(), cloud, budget=budget)

    def estimate_cost(self, prompt: str) -> float:
        return estimate_tokens(prompt) / 1000 * self.cost_per_1k_tokens

    async def route(
        self,
        text: str,
        *,
        query_type: QueryType | None = None,
        prompt: str | None = None,
    ) -> RoutedResponse:
        """Answer ``text``, sending ``prompt`` (defaults to ``text``) to the chosen provider.

        Routing and classification look at ``text`` only; the cache is keyed on
        the prompt so enriched per-user prompts never share an entry.
        """
        query_type = query_type or classify_query(text)
        prompt = prompt or text
        key = cache_key(query_type, prompt)
        cached = self.cache.get(key)
        if cached is not None:
            return replace(cached, cost=0.0, cached=True)

        response = None
        if self.cloud is not None and needs_cloud(text):
            response = await self._try_cloud(prompt, query_type)
        if response is None:
            response = await self._try_local(prompt, query_type)
        if response is None:
            logger.warning("All providers failed for %s query; using canned reply", query_type)
            return RoutedResponse(
                text=FALLBACK_RESPONSES.get(query_type, FALLBACK_RESPONSES["general"]),
                provider="fallback",
                query_type=query_type,
            )
        self.cache.put(key, response)
        return response

    async def _try_cloud(self, prompt: str, query_type: QueryType) -> RoutedResponse | None:
        estimate = self.estimate_cost(prompt)
        if not self.budget.can_spend(estimate):
            logger.info("Cloud budget too low for %.4f estimate; routing locally", estimate)
            return None
        try:
            completion = await self.cloud.complete(prompt, system=self.system_prompt)
        except PROVIDER_ERRORS as exc:
            logger.warning("Cloud provider failed; routing locally: %s", exc)
            return None
        self.budget.record(completion.cost)
        return RoutedResponse(
            text=completion.text,
            provider="cloud",
            query_type=query_type,
            cost=completion.cost,
            model=completion.model,
        )

    async def _try_local(self, prompt: str, query_type: QueryType) -> RoutedResponse | None:
        try:
            completion = await self.local.complete(prompt, system=self.system_prompt)
        except PROVIDER_ERRORS as exc:
            logger.warning("Local provider failed: %s", exc)
            return None
        return RoutedResponse(
            text=completion.text,
            provider="local",
            query_type=query_type,
            cost=completion.cost,
            model=completion.model,
        )
