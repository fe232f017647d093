"""Text embedding clients used to index and query the recipe collection."""

from __future__ import annotations

import asyncio
from typing import Protocol, Sequence

from flavor_monk.core.config import settings
from flavor_monk.utils.http import ExternalAPIError, post_json

EMBEDDING_BATCH_SIZE = 32


class Embedder(Protocol):
    async def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


class OllamaEmbedder:
    """Embed text through an Ollama ``/api/embeddings`` endpoint."""

    def __init__(self, endpoint: str | None = None, model: str | None = None, *, timeout: float = 30.0) -> None:
        self.endpoint = (endpoint or settings.embedding_endpoint).rstrip("/")
        self.model = model or settings.embedding_model
        self.timeout = timeout

    async def _embed_one(self, text: str) -> list[float]:
        data = await post_json(
            f"{self.endpoint}/api/embeddings",
            {"model": self.model, "prompt": text},
            timeout=self.timeout,
        )
        embedding = data.get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise ExternalAPIError(f"Embedding response from {self.model} had no vector")
        return [float(value) for value in embedding]

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), EMBEDDING_BATCH_SIZE):
            batch = texts[start : start + EMBEDDING_BATCH_SIZE]
            vectors.extend(await asyncio.gather(*(self._embed_one(text) for text in batch)))
        return vectors
