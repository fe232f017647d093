"""The ranking entry point: profile -> expansion -> parameters -> retrieval -> ranking."""

from __future__ import annotations

import logging
import math
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.core.config import settings
from flavor_monk.recommendation.base import RankingResult
from flavor_monk.recommendation.errors import BackendUnavailableError, InputError
from flavor_monk.recommendation.expansion import calculate_expansion
from flavor_monk.recommendation.observability import StoreMonitor
from flavor_monk.recommendation.parameters import build_search_parameters
from flavor_monk.recommendation.ranker import rank_candidates
from flavor_monk.recommendation.retriever import HybridRetriever, SimilaritySearch
from flavor_monk.services import profile_service
from flavor_monk.utils.cache import LRUCache
from flavor_monk.utils.text import normalize_query

logger = logging.getLogger("flavor_monk.services.recommendation")

QUERY_TYPE = "recommendation"

# Keys are (query_type, user_id, normalized query, intent strength).
ranking_cache: LRUCache[RankingResult] = LRUCache(settings.ranking_cache_size)


def invalidate_user(user_id: object, cache: LRUCache[RankingResult] | None = None) -> int:
    """Forget cached rankings for one user after their profile or feedback changes."""
    cache = ranking_cache if cache is None else cache
    target = str(user_id)
    return cache.invalidate(lambda key: isinstance(key, tuple) and len(key) > 1 and key[1] == target)


def _validate(query: object, intent_strength: object) -> tuple[str, float]:
    if not isinstance(query, str) or not query.strip():
        raise InputError("query must be a non-empty string")
    if isinstance(intent_strength, bool) or not isinstance(intent_strength, (int, float)):
        raise InputError("intent strength must be a number")
    intent = float(intent_strength)
    if math.isnan(intent) or not 0.0 <= intent <= 1.0:
        raise InputError("intent strength must be between 0 and 1")
    return query.strip(), intent


async def rank(
    session: AsyncSession,
    vector_store: SimilaritySearch | None,
    query: str,
    user_id: str,
    intent_strength: float,
    *,
    cache: LRUCache[RankingResult] | None = None,
    weights: Mapping[str, float] | None = None,
    monitor: StoreMonitor | None = None,
    query_type: str = QUERY_TYPE,
) -> RankingResult:
    """Rank recipes for a user's query.

    Raises ``InputError`` for a blank query, an intent outside [0, 1], or an
    unknown user. A store outage never raises: one store down gives a
    degraded result, both down give ``status="unavailable"``. Only complete,
    non-degraded results are cached.
    """
    query, intent = _validate(query, intent_strength)
    user_uuid = profile_service.parse_user_id(user_id)
    cache = ranking_cache if cache is None else cache
    key = (query_type, str(user_uuid), normalize_query(query), round(intent, 4))
    cached = cache.get(key)
    if cached is not None:
        return cached

    profile = await profile_service.get_user_profile(session, user_uuid)
    expansion = calculate_expansion(query, profile, intent)
    parameters = build_search_parameters(profile, expansion)
    retriever = HybridRetriever(session, vector_store, monitor=monitor)
    try:
        outcome = await retriever.retrieve(query, profile, parameters)
    except BackendUnavailableError as exc:
        return RankingResult(
            status="unavailable",
            candidates=(),
            expansion=expansion,
            parameters=parameters,
            failures=exc.failures,
        )

    ranked = rank_candidates(outcome.candidates, profile, parameters, weights or settings.ranking_weights)
    result = RankingResult(
        status="ok" if ranked else "empty",
        candidates=tuple(ranked),
        expansion=expansion,
        parameters=parameters,
        sources=outcome.sources,
        failures=outcome.failures,
    )
    logger.info(
        "Ranked %d candidates for user %s (expansion %.2f, sources %s)",
        len(ranked),
        user_uuid,
        expansion,
        ",".join(outcome.sources),
    )
    if not result.degraded:
        cache.put(key, result)
    return result
