from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.api.deps import get_current_user, get_db, get_vector_store
from flavor_monk.models.user import User
from flavor_monk.recommendation.base import RankingResult
from flavor_monk.recommendation.errors import InputError
from flavor_monk.recommendation.retriever import SimilaritySearch
from flavor_monk.schema.recommendation import RankedRecipeRead, RecommendationRequest, RecommendationResponse
from flavor_monk.services import recommendation_service

router = APIRouter()


def to_response(result: RankingResult, *, limit: int | None = None) -> RecommendationResponse:
    candidates = result.candidates[:limit] if limit else result.candidates
    return RecommendationResponse(
        status=result.status,
        expansion=result.expansion,
        sources=list(result.sources),
        degraded=result.degraded,
        failures=dict(result.failures),
        candidates=[RankedRecipeRead.model_validate(entry) for entry in candidates],
    )


@router.post("", response_model=RecommendationResponse)
async def recommend(
    payload: RecommendationRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    vector_store: SimilaritySearch | None = Depends(get_vector_store),
) -> RecommendationResponse:
    """Rank catalog recipes for the current user's query.

    An empty list with ``status="empty"`` means nothing matched; a 503 means
    neither recipe store could be reached.
    """
    try:
        result = await recommendation_service.rank(
            session, vector_store, payload.query, str(current_user.id), payload.intent_strength
        )
    except InputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if result.status == "unavailable":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "unavailable", "failures": result.failures},
        )
    return to_response(result, limit=payload.limit)
