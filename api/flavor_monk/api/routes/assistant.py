from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.api.deps import get_current_user, get_db, get_llm_router, get_vector_store
from flavor_monk.api.routes.recommendations import to_response
from flavor_monk.llm.base import classify_query
from flavor_monk.llm.prompts import build_assistant_prompt
from flavor_monk.llm.router import LLMRouter
from flavor_monk.models.user import User
from flavor_monk.recommendation.errors import InputError
from flavor_monk.recommendation.retriever import SimilaritySearch
from flavor_monk.schema.assistant import AssistantRequest, AssistantResponse
from flavor_monk.services import interaction_service, profile_service, recipe_service, recommendation_service

router = APIRouter()

ASSISTANT_RECOMMENDATIONS = 5


@router.post("", response_model=AssistantResponse)
async def ask_assistant(
    payload: AssistantRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    vector_store: SimilaritySearch | None = Depends(get_vector_store),
    llm_router: LLMRouter = Depends(get_llm_router),
) -> AssistantResponse:
    """Chat with the assistant; replies are grounded in the user's ranked recipes.

    A store outage still gets a reply, just without catalog matches.
    """
    query_type = classify_query(payload.message)
    try:
        result = await recommendation_service.rank(
            session,
            vector_store,
            payload.message,
            str(current_user.id),
            payload.intent_strength,
            query_type=query_type,
        )
    except InputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    profile = await profile_service.get_user_profile(session, current_user.id)
    top_rated_ids = await interaction_service.top_rated_recipe_ids(session, current_user.id)
    top_rated = await recipe_service.get_recipes_by_ids(session, top_rated_ids)
    prompt = build_assistant_prompt(payload.message, profile, result.candidates, top_rated)
    reply = await llm_router.route(payload.message, query_type=query_type, prompt=prompt)

    ranked = to_response(result, limit=ASSISTANT_RECOMMENDATIONS)
    return AssistantResponse(
        reply=reply.text,
        provider=reply.provider,
        query_type=reply.query_type,
        cached=reply.cached,
        cost=reply.cost,
        status=result.status,
        recommendations=ranked.candidates,
    )
