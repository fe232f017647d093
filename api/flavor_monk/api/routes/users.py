"""Account, questionnaire, and learned-preference endpoints for the current user."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.api.deps import get_current_user, get_db
from flavor_monk.models.user import User
from flavor_monk.recommendation.base import ProfileSnapshot
from flavor_monk.recommendation.profile import constraint_strictness
from flavor_monk.schema.profile import ProfileRead
from flavor_monk.schema.questionnaire import QuestionnaireSubmission
from flavor_monk.schema.user import UserRead
from flavor_monk.services import profile_service, recommendation_service

router = APIRouter()


def _profile_read(snapshot: ProfileSnapshot) -> ProfileRead:
    data = snapshot.model_dump(exclude={"successful_recipe_ids", "failed_recipe_ids", "recipe_ratings"})
    return ProfileRead(
        **data,
        successful_recipe_count=len(snapshot.successful_recipe_ids),
        constraint_strictness=round(constraint_strictness(snapshot), 4),
    )


@router.get("/me", response_model=UserRead)
async def read_current_user(current_user: User = Depends(get_current_user)) -> User:
    """Return the current authenticated user."""
    return current_user


@router.get("/me/profile", response_model=ProfileRead)
async def read_profile(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileRead:
    """Return the questionnaire answers and learned signals used for ranking."""
    return _profile_read(await profile_service.get_user_profile(session, current_user.id))


@router.put("/me/questionnaire", response_model=ProfileRead)
async def submit_questionnaire(
    payload: QuestionnaireSubmission,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileRead:
    """Create or replace the current user's profile from questionnaire answers."""
    await profile_service.save_questionnaire(session, current_user.id, payload)
    recommendation_service.invalidate_user(current_user.id)
    return _profile_read(await profile_service.get_user_profile(session, current_user.id))


@router.delete("/me/preferences", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def reset_preferences(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> None:
    """Forget every learned ingredient affinity."""
    await profile_service.reset_affinities(session, current_user.id)
    recommendation_service.invalidate_user(current_user.id)


@router.delete("/me/profile", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def archive_profile(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> None:
    """Archive the questionnaire profile; resubmitting the questionnaire restores it."""
    profile = await profile_service.archive_profile(session, current_user.id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    recommendation_service.invalidate_user(current_user.id)
