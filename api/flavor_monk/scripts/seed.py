"""Seed script for demo data in local/dev environments."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.db.base import Base
from flavor_monk.db.session import async_session, engine
from flavor_monk.models.recipe import Recipe
from flavor_monk.models.user import BudgetTier, Goal, HealthCondition, Severity
from flavor_monk.recommendation.vector_store import RecipeVectorStore
from flavor_monk.samples import load_recipe_catalog
from flavor_monk.schema.questionnaire import HealthConditionInput, QuestionnaireSubmission
from flavor_monk.services import profile_service, recipe_service, user_service

logger = logging.getLogger("flavor_monk.scripts.seed")

DEMO_EMAIL = "demo@flavormonk.local"
DEMO_PASSWORD = "changeme123"
DEMO_DISPLAY_NAME = "Demo Cook"
DEMO_QUESTIONNAIRE = QuestionnaireSubmission(
    primary_goal=Goal.GENERAL_HEALTH,
    secondary_goals=[Goal.ANTI_INFLAMMATORY],
    health_conditions=[HealthConditionInput(condition=HealthCondition.ARTHRITIS, severity=Severity.MILD)],
    allergies=["peanut"],
    cooking_skill=2,
    max_prep_time=20,
    budget=BudgetTier.MODERATE,
    household_size=2,
    appliances=["oven", "stovetop", "air fryer"],
    cuisine_preferences=["mediterranean", "indian"],
    habit_change_readiness=["new_foods"],
)


async def seed(session: AsyncSession | None = None) -> dict[str, int]:
    """Seed the demo user and recipe catalog; safe to run repeatedly."""
    if session is None:
        async with async_session() as managed_session:
            return await _seed_session(managed_session)
    return await _seed_session(session)


async def _seed_session(session: AsyncSession) -> dict[str, int]:
    user = await user_service.get_user_by_email(session, DEMO_EMAIL)
    if not user:
        user = await user_service.create_user(
            session,
            email=DEMO_EMAIL,
            password=DEMO_PASSWORD,
            display_name=DEMO_DISPLAY_NAME,
        )
        await profile_service.save_questionnaire(session, user.id, DEMO_QUESTIONNAIRE)

    created = await _ensure_recipes(session)
    logger.info("Seed complete - %d new recipes for %s", created, DEMO_EMAIL)
    return {"recipes_created": created}


async def _ensure_recipes(session: AsyncSession) -> int:
    existing = set((await session.execute(select(Recipe.name))).scalars().all())
    created = 0
    for payload in load_recipe_catalog():
        if payload["name"] in existing:
            continue
        await recipe_service.create_recipe(session, payload, commit=False)
        created += 1
    await session.commit()
    return created


async def index_catalog(session: AsyncSession, store: RecipeVectorStore) -> int:
    """Embed every active recipe; returns how many were written."""
    candidates = await recipe_service.list_active_candidates(session)
    return await store.index_recipes(candidates)


async def _main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session() as session:
        await seed(session)
        try:
            indexed = await index_catalog(session, RecipeVectorStore.from_settings())
        except Exception as exc:
            logger.warning("Skipped vector indexing; is the embedding service running? %s", exc)
        else:
            logger.info("Indexed %d recipes into the vector store", indexed)


def main() -> None:
    """CLI entrypoint for seeding demo data."""
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_main())


if __name__ == "__main__":
    main()
