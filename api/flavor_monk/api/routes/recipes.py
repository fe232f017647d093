import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.api.deps import get_current_user, get_db
from flavor_monk.models.user import User
from flavor_monk.recommendation.errors import InputError
from flavor_monk.schema.interaction import FeedbackCreate, FeedbackRead, InteractionCreate, InteractionRead
from flavor_monk.schema.recipe import RecipeRead
from flavor_monk.services import interaction_service, recipe_service

router = APIRouter()


@router.get("", response_model=list[RecipeRead])
async def browse_recipes(
    session: AsyncSession = Depends(get_db),
    tags: list[str] = Query(default=[]),
    cuisine: list[str] = Query(default=[]),
    appliances: list[str] = Query(default=[]),
    exclude: list[str] = Query(default=[]),
    max_total_minutes: int | None = Query(default=None, ge=1),
    max_complexity: int | None = Query(default=None, ge=1, le=5),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[RecipeRead]:
    """Structured catalog browse; every filter narrows, unset filters do not."""
    filters = recipe_service.RecipeFilters(
        max_total_minutes=max_total_minutes,
        max_complexity=max_complexity,
        appliances=tuple(appliances),
        tags=tuple(tags),
        excluded_ingredients=tuple(exclude),
        cuisines=tuple(cuisine),
        limit=limit,
        offset=offset,
    )
    candidates = await recipe_service.find_recipes(session, filters)
    return [RecipeRead.model_validate(candidate) for candidate in candidates]


@router.get("/{recipe_id}", response_model=RecipeRead)
async def read_recipe(recipe_id: uuid.UUID, session: AsyncSession = Depends(get_db)) -> RecipeRead:
    return RecipeRead.model_validate(await recipe_service.get_candidate(session, recipe_id))


@router.post("/{recipe_id}/interactions", response_model=InteractionRead, status_code=status.HTTP_201_CREATED)
async def record_interaction(
    recipe_id: uuid.UUID,
    payload: InteractionCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Record viewed/saved/started/completed style events for a recipe."""
    try:
        return await interaction_service.record_interaction(
            session, current_user.id, recipe_id, payload.model_dump()
        )
    except InputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/{recipe_id}/feedback", response_model=FeedbackRead, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    recipe_id: uuid.UUID,
    payload: FeedbackCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Rate a recipe; the rating feeds the user's ingredient affinities."""
    try:
        return await interaction_service.submit_feedback(
            session, current_user.id, recipe_id, payload.rating, payload.notes
        )
    except InputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
