"""Chroma-backed semantic index over the recipe catalog."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import chromadb

from flavor_monk.core.config import settings
from flavor_monk.recommendation.base import IngredientLine, RecipeCandidate
from flavor_monk.recommendation.embeddings import Embedder, OllamaEmbedder

logger = logging.getLogger("flavor_monk.vector_store")

INDEX_BATCH_SIZE = 100
LIST_SEPARATOR = ", "


@dataclass(slots=True)
class VectorHit:
    recipe_id: str
    distance: float
    metadata: dict[str, Any] = field(default_factory=dict)


def recipe_document(recipe: RecipeCandidate) -> str:
    """Render the text that gets embedded for a recipe."""
    ingredients = LIST_SEPARATOR.join(line.name for line in recipe.ingredients)
    appliances = LIST_SEPARATOR.join(recipe.appliances)
    tags = LIST_SEPARATOR.join(sorted(recipe.tags))
    return (
        f"{recipe.name}. {recipe.description or ''}. Ingredients: {ingredients}. "
        f"Appliances: {appliances}. Tags: {tags}."
    )


def recipe_metadata(recipe: RecipeCandidate) -> dict[str, Any]:
    """Flatten a recipe into Chroma's scalar-only metadata."""
    metadata = {
        "name": recipe.name,
        "description": recipe.description,
        "prep_minutes": recipe.prep_minutes,
        "cook_minutes": recipe.cook_minutes,
        "total_minutes": recipe.total_minutes,
        "servings": recipe.servings,
        "complexity": recipe.complexity,
        "cost_tier": recipe.cost_tier,
        "cuisine": recipe.cuisine,
        "appliances": LIST_SEPARATOR.join(recipe.appliances),
        "tags": LIST_SEPARATOR.join(sorted(recipe.tags)),
        "ingredients": LIST_SEPARATOR.join(line.name for line in recipe.ingredients),
        "ingredient_count": len(recipe.ingredients),
    }
    return {key: value for key, value in metadata.items() if value is not None}


def _split(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in str(value).split(",") if item.strip())


def candidate_from_hit(hit: VectorHit) -> RecipeCandidate:
    """Build a thin candidate from index metadata when the relational store is unreachable."""
    metadata = hit.metadata
    return RecipeCandidate(
        id=hit.recipe_id,
        name=str(metadata.get("name") or hit.recipe_id),
        description=metadata.get("description"),
        prep_minutes=int(metadata.get("prep_minutes") or 0),
        cook_minutes=int(metadata.get("cook_minutes") or 0),
        total_minutes=int(metadata.get("total_minutes") or 0),
        servings=int(metadata.get("servings") or 1),
        complexity=int(metadata.get("complexity") or 3),
        cost_tier=metadata.get("cost_tier"),
        cuisine=metadata.get("cuisine"),
        appliances=_split(metadata.get("appliances")),
        ingredients=tuple(IngredientLine(name=name) for name in _split(metadata.get("ingredients"))),
        tags=frozenset(_split(metadata.get("tags"))),
        source="vector",
        distance=hit.distance,
    )


def build_where(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate simple filters into a Chroma ``where`` clause.

    Sequences become ``$in`` clauses, dicts pass through as operator
    expressions, and scalars match exactly. Several clauses are joined with
    ``$and``.
    """
    if not filters:
        return None
    clauses: list[dict[str, Any]] = []
    for key, value in filters.items():
        if isinstance(value, (set, list, tuple)):
            values = [item for item in value if item]
            if values:
                clauses.append({key: {"$in": values}})
        elif value is not None:
            clauses.append({key: value})
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class RecipeVectorStore:
    """Async facade over a Chroma collection of recipe embeddings.

    Chroma's client is synchronous, so collection calls run in a worker
    thread; embeddings are computed up front by the injected ``Embedder``.
    """

    def __init__(self, client: Any, embedder: Embedder, *, collection_name: str | None = None) -> None:
        self._client = client
        self._embedder = embedder
        self.collection_name = collection_name or settings.chroma_collection
        self._collection = self._open_collection()

    @classmethod
    def from_settings(cls, embedder: Embedder | None = None) -> "RecipeVectorStore":
        if settings.chroma_host:
            client = chromadb.HttpClient(host=settings.chroma_host, port=settings.chroma_port)
        else:
            client = chromadb.PersistentClient(path=settings.chroma_path)
        return cls(client, embedder or OllamaEmbedder())

    def _open_collection(self) -> Any:
        return self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine", "description": "Recipe embeddings for semantic search"},
            embedding_function=None,
        )

    async def count(self) -> int:
        return int(await asyncio.to_thread(self._collection.count))

    async def reset(self) -> None:
        """Drop and recreate the collection."""
        await asyncio.to_thread(self._client.delete_collection, self.collection_name)
        self._collection = await asyncio.to_thread(self._open_collection)

    async def index_recipes(self, recipes: Sequence[RecipeCandidate]) -> int:
        """Upsert recipes in batches; returns how many were written."""
        written = 0
        for start in range(0, len(recipes), INDEX_BATCH_SIZE):
            batch = recipes[start : start + INDEX_BATCH_SIZE]
            documents = [recipe_document(recipe) for recipe in batch]
            embeddings = await self._embedder.embed(documents)
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[recipe.id for recipe in batch],
                documents=documents,
                embeddings=embeddings,
                metadatas=[recipe_metadata(recipe) for recipe in batch],
            )
            written += len(batch)
            logger.info(
                "Indexed recipe batch %s of %s",
                start // INDEX_BATCH_SIZE + 1,
                -(-len(recipes) // INDEX_BATCH_SIZE),
            )
        return written

    async def delete_recipes(self, recipe_ids: Iterable[str]) -> None:
        ids = [recipe_id for recipe_id in recipe_ids if recipe_id]
        if ids:
            await asyncio.to_thread(self._collection.delete, ids=ids)

    async def query_similar(
        self,
        text: str,
        k: int,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """Return up to ``k`` nearest recipes to ``text`` ordered by distance."""
        available = await self.count()
        if not available or k <= 0:
            return []
        [embedding] = await self._embedder.embed([text])
        result = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[embedding],
            n_results=min(k, available),
            where=build_where(filters),
        )
        ids = (result.get("ids") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        hits: list[VectorHit] = []
        for index, recipe_id in enumerate(ids):
            distance = float(distances[index]) if index < len(distances) else 0.0
            metadata = dict(metadatas[index] or {}) if index < len(metadatas) else {}
            hits.append(VectorHit(recipe_id=str(recipe_id), distance=distance, metadata=metadata))
        return hits
