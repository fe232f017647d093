"""HTTP-backed completion providers."""

from __future__ import annotations

import logging
from typing import Any

from flavor_monk.core.config import settings
from flavor_monk.llm.base import LLMCompletion
from flavor_monk.utils.http import ExternalAPIError, post_json

logger = logging.getLogger("flavor_monk.llm.providers")

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 1024


def estimate_tokens(text: str) -> int:
    """Rough prompt plus reply size: four characters per token, doubled for the answer."""
    return max(1, len(text) // 4 * 2)


class OllamaProvider:
    """Local generation through Ollama's ``/api/generate``; always free."""

    name = "local"

    def __init__(self, endpoint: str | None = None, model: str | None = None, *, timeout: float | None = None) -> None:
        self.endpoint = (endpoint or settings.ollama_endpoint).rstrip("/")
        self.model = model or settings.ollama_model
        self.timeout = timeout or settings.llm_timeout_seconds

    async def complete(
        self, prompt: str, *, system: str | None = None, max_tokens: int | None = None
    ) -> LLMCompletion:
        payload: dict[str, Any] = {"model": self.model, "prompt": prompt, "stream": False}
        if system:
            payload["system"] = system
        if max_tokens:
            payload["options"] = {"num_predict": max_tokens}
        data = await post_json(f"{self.endpoint}/api/generate", payload, timeout=self.timeout)
        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise ExternalAPIError(f"Ollama model {self.model} returned no text")
        return LLMCompletion(
            text=text.strip(),
            model=self.model,
            cost=0.0,
            input_tokens=data.get("prompt_eval_count"),
            output_tokens=data.get("eval_count"),
        )


class AnthropicProvider:
    """Cloud generation through the Anthropic Messages API.

    Cost is computed from reported token usage when present, otherwise from
    :func:`estimate_tokens`.
    """

    name = "cloud"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        *,
        cost_per_1k_tokens: float | None = None,
        timeout: float | None = None,
        url: str = ANTHROPIC_MESSAGES_URL,
    ) -> None:
        if not api_key:
            raise ValueError("Anthropic API key is required")
        self.api_key = api_key
        self.model = model or settings.anthropic_model
        self.cost_per_1k_tokens = (
            settings.cloud_cost_per_1k_tokens if cost_per_1k_tokens is None else cost_per_1k_tokens
        )
        self.timeout = timeout or settings.llm_timeout_seconds
        self.url = url

    def estimate_cost(self, prompt: str) -> float:
        return estimate_tokens(prompt) / 1000 * self.cost_per_1k_tokens

    async def complete(
        self, prompt: str, *, system: str | None = None, max_tokens: int | None = None
    ) -> LLMCompletion:
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        data = await post_json(self.url, payload, headers=headers, timeout=self.timeout)
        blocks = data.get("content") or []
        text = "".join(block.get("text", "") for block in blocks if block.get("type") == "text").strip()
        if not text:
            raise ExternalAPIError(f"Anthropic model {self.model} returned no text")
        usage = data.get("usage") or {}
        input_tokens = usage.get("input_tokens")
        output_tokens = usage.get("output_tokens")
        if input_tokens is not None and output_tokens is not None:
            cost = (input_tokens + output_tokens) / 1000 * self.cost_per_1k_tokens
        else:
            cost = self.estimate_cost(prompt)
        return LLMCompletion(
            text=text,
            model=self.model,
            cost=round(cost, 6),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
