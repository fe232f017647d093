from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

QueryType = Literal["recipe", "meal_plan", "nutrition_science", "cooking_help", "general"]
ProviderName = Literal["local", "cloud", "fallback"]

QUERY_KEYWORDS: tuple[tuple[QueryType, tuple[str, ...]], ...] = (
    ("recipe", ("recipe", "cook", "make")),
    ("meal_plan", ("meal plan", "week", "planning")),
    ("nutrition_science", ("nutrient", "vitamin", "deficiency", "health", "medical")),
    ("cooking_help", ("how to", "technique", "help")),
)


@dataclass(frozen=True, slots=True)
class LLMCompletion:
    text: str
    model: str
    cost: float = 0.0
    input_tokens: int | None = None
    output_tokens: int | None = None


class LLMProvider(Protocol):
    name: str

    async def complete(
        self, prompt: str, *, system: str | None = None, max_tokens: int | None = None
    ) -> LLMCompletion: ...


def classify_query(text: str) -> QueryType:
    """Bucket a chat message by the first keyword family it mentions."""
    lowered = text.lower()
    for query_type, keywords in QUERY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return query_type
    return "general"
