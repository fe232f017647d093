"""Scheduled catalog maintenance: quality review and vector index upkeep."""

from __future__ import annotations

import asyncio
import logging

from flavor_monk.db.session import async_session
from flavor_monk.recommendation.vector_store import RecipeVectorStore
from flavor_monk.services import quality_service, recipe_service

logger = logging.getLogger("flavor_monk.jobs.maintenance")


def recipe_quality_job() -> dict[str, object]:
    """Nightly pass: archive poor and unused recipes, rescore the rest, drop archived vectors."""

    async def _run() -> dict[str, object]:
        async with async_session() as session:
            summary = await quality_service.run_quality_pass(session)
        archived = [*summary["archived_low_rating"], *summary["archived_unused"]]
        if archived:
            try:
                store = RecipeVectorStore.from_settings()
                await store.delete_recipes(archived)
            except Exception as exc:
                # The retriever skips archived ids on merge, so stale vectors are harmless.
                logger.warning("Unable to drop %d archived recipes from the vector index: %s", len(archived), exc)
        return summary

    summary = asyncio.run(_run())
    logger.info(
        "Quality pass archived %d low-rated and %d unused recipes; rescored %d, flagged %d",
        len(summary["archived_low_rating"]),
        len(summary["archived_unused"]),
        summary["rescored"],
        summary["flagged"],
    )
    return summary


def reindex_recipes_job(reset: bool = False) -> dict[str, int]:
    """Embed every active recipe into the vector index."""

    async def _run() -> int:
        store = RecipeVectorStore.from_settings()
        if reset:
            await store.reset()
        async with async_session() as session:
            candidates = await recipe_service.list_active_candidates(session)
        return await store.index_recipes(candidates)

    indexed = asyncio.run(_run())
    logger.info("Indexed %d recipes into the vector store", indexed)
    return {"indexed": indexed}
