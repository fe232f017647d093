"""Hybrid retrieval: semantic and structured store queries merged into one candidate set."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.core.config import settings
from flavor_monk.recommendation.base import (
    ProfileSnapshot,
    RecipeCandidate,
    RetrievalOutcome,
    SearchParameters,
)
from flavor_monk.recommendation.errors import BackendUnavailableError
from flavor_monk.recommendation.observability import StoreMonitor, store_monitor
from flavor_monk.recommendation.ranker import contains_any
from flavor_monk.recommendation.vector_store import VectorHit, candidate_from_hit
from flavor_monk.recommendation.weights import NUTRIENT_TARGETS
from flavor_monk.services import recipe_service

logger = logging.getLogger("flavor_monk.retriever")

VECTOR = "vector"
RELATIONAL = "relational"
# Below this flexibility the structured query only returns preferred cuisines.
CUISINE_LOCK_FLEXIBILITY = 0.3


class SimilaritySearch(Protocol):
    async def query_similar(
        self, text: str, k: int, filters: dict[str, Any] | None = None
    ) -> list[VectorHit]: ...


def build_relational_filters(parameters: SearchParameters, *, limit: int | None = None) -> recipe_service.RecipeFilters:
    """Turn search parameters into a structured catalog query.

    Limit-type nutrients get a hard ceiling at twice the target (where their
    alignment score reaches zero), loosened by the filter's flexibility.
    """
    ceilings: dict[str, float] = {}
    for nutrient, health_filter in parameters.health_filters.items():
        target = NUTRIENT_TARGETS.get(nutrient)
        if target is None or target.kind != "limit":
            continue
        ceilings[target.column] = target.value * 2 * (1 + health_filter.flexibility)

    cuisines: tuple[str, ...] = ()
    if parameters.preferred_cuisines and parameters.cuisine_flexibility < CUISINE_LOCK_FLEXIBILITY:
        cuisines = parameters.preferred_cuisines

    return recipe_service.RecipeFilters(
        max_prep_minutes=parameters.max_prep_time,
        max_cook_minutes=parameters.max_cook_time,
        max_complexity=parameters.max_complexity,
        appliances=parameters.appliance_options,
        excluded_ingredients=parameters.suppressed_ingredients,
        cuisines=cuisines,
        nutrient_ceilings=ceilings,
        limit=limit if limit is not None else settings.relational_candidate_limit,
    )


def is_compatible(recipe: RecipeCandidate, parameters: SearchParameters) -> bool:
    """True when the recipe fits the appliance set and complexity ceiling and has no allergen or dislike."""
    if parameters.appliance_options and not set(recipe.appliances) <= set(parameters.appliance_options):
        return False
    if recipe.complexity > parameters.max_complexity:
        return False
    return not contains_any(recipe, parameters.suppressed_ingredients)


class HybridRetriever:
    """Query both stores concurrently and merge what comes back.

    A store that errors, times out, or has an open circuit is recorded in
    ``RetrievalOutcome.failures`` and the other store's results are used
    alone. ``BackendUnavailableError`` is raised only when both fail.
    """

    def __init__(
        self,
        session: AsyncSession | None,
        vector_store: SimilaritySearch | None,
        *,
        monitor: StoreMonitor | None = None,
        timeout_seconds: float | None = None,
        relational_limit: int | None = None,
    ) -> None:
        self.session = session
        self.vector_store = vector_store
        self.monitor = monitor or store_monitor
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.store_timeout_seconds
        self.relational_limit = relational_limit

    async def _call(
        self, store: str, operation: str, func: Callable[[], Awaitable[Any]], context: dict[str, Any]
    ) -> Any:
        return await self.monitor.track(
            store,
            operation,
            lambda: asyncio.wait_for(func(), timeout=self.timeout_seconds),
            context=context,
        )

    async def _query_vector(self, query: str, parameters: SearchParameters) -> list[VectorHit]:
        if self.vector_store is None:
            raise RuntimeError("vector store not configured")
        hits = await self._call(
            VECTOR,
            "query_similar",
            lambda: self.vector_store.query_similar(
                query,
                parameters.vector_result_count,
                {"complexity": {"$lte": parameters.max_complexity}},
            ),
            {"k": parameters.vector_result_count},
        )
        radius = parameters.vector_radius
        return sorted((hit for hit in hits if hit.distance <= radius), key=lambda hit: hit.distance)

    async def _query_relational(self, parameters: SearchParameters) -> list[RecipeCandidate]:
        if self.session is None:
            raise RuntimeError("relational store not configured")
        filters = build_relational_filters(parameters, limit=self.relational_limit)
        return await self._call(
            RELATIONAL,
            "find_recipes",
            lambda: recipe_service.find_recipes(self.session, filters),
            {"limit": filters.limit},
        )

    async def _hydrate(self, ids: Sequence[str]) -> list[RecipeCandidate] | None:
        """Load full records for vector-only hits; None if the relational store fails."""
        if not ids:
            return []
        try:
            return await self._call(
                RELATIONAL,
                "get_recipes_by_ids",
                lambda: recipe_service.get_recipes_by_ids(self.session, ids),
                {"count": len(ids)},
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Hydrating %s vector hits failed; keeping index metadata: %s", len(ids), exc)
            return None

    async def retrieve(
        self, query: str, profile: ProfileSnapshot, parameters: SearchParameters
    ) -> RetrievalOutcome:
        vector_result, relational_result = await asyncio.gather(
            self._query_vector(query, parameters),
            self._query_relational(parameters),
            return_exceptions=True,
        )
        failures: dict[str, str] = {}
        for store, result in ((VECTOR, vector_result), (RELATIONAL, relational_result)):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures[store] = str(result) or result.__class__.__name__
        self.monitor.record_retrieval(failures, user_id=profile.user_id)
        if len(failures) == 2:
            raise BackendUnavailableError(failures)

        hits: list[VectorHit] = [] if VECTOR in failures else vector_result
        relational: list[RecipeCandidate] = [] if RELATIONAL in failures else relational_result
        merged = await self._merge(hits, relational, relational_up=RELATIONAL not in failures)
        candidates = [candidate for candidate in merged if is_compatible(candidate, parameters)]
        sources = tuple(store for store in (VECTOR, RELATIONAL) if store not in failures)
        return RetrievalOutcome(candidates=candidates, sources=sources, failures=failures)

    async def _merge(
        self, hits: list[VectorHit], relational: list[RecipeCandidate], *, relational_up: bool
    ) -> list[RecipeCandidate]:
        """Merge by recipe id: vector-similarity order first, then relational-only rows."""
        records: dict[str, RecipeCandidate] = {candidate.id: candidate for candidate in relational}
        missing = [hit.recipe_id for hit in hits if hit.recipe_id not in records]

        hydrated = await self._hydrate(missing) if relational_up else None
        if hydrated is not None:
            records.update({candidate.id: candidate for candidate in hydrated})
            thin_ids: set[str] = set()
        else:
            thin_ids = set(missing)

        ordered: list[RecipeCandidate] = []
        seen: set[str] = set()
        for hit in hits:
            if hit.recipe_id in seen:
                continue
            seen.add(hit.recipe_id)
            record = records.get(hit.recipe_id)
            if record is None and hit.recipe_id in thin_ids:
                record = candidate_from_hit(hit)
            if record is None:
                # Indexed but no longer active in the catalog.
                continue
            ordered.append(replace(record, distance=hit.distance))
        for candidate in relational:
            if candidate.id not in seen:
                seen.add(candidate.id)
                ordered.append(candidate)
        return ordered
