import logging
from functools import lru_cache

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.core.config import settings
from flavor_monk.core.security import decode_access_token
from flavor_monk.db.session import get_session
from flavor_monk.llm.budget import DailyBudgetTracker
from flavor_monk.llm.router import LLMRouter
from flavor_monk.models.user import User
from flavor_monk.recommendation.vector_store import RecipeVectorStore
from flavor_monk.services import user_service

logger = logging.getLogger("flavor_monk.api.deps")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/login", auto_error=False)


async def get_db() -> AsyncSession:
    async for session in get_session():
        yield session


async def get_current_user(
    session: AsyncSession = Depends(get_db),
    token: str | None = Depends(oauth2_scheme),
    access_token_cookie: str | None = Cookie(default=None, alias="access_token"),
) -> User:
    candidate = token or access_token_cookie
    if not candidate:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    return await _resolve_user_from_token(session, candidate)


async def _resolve_user_from_token(session: AsyncSession, token: str) -> User:
    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = await user_service.get_user_by_id(session, payload.get("sub"))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


async def get_optional_current_user(
    session: AsyncSession = Depends(get_db),
    token: str | None = Depends(oauth2_scheme),
    access_token_cookie: str | None = Cookie(default=None, alias="access_token"),
) -> User | None:
    candidate = token or access_token_cookie
    if not candidate:
        return None
    return await _resolve_user_from_token(session, candidate)


async def require_ops_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.email.lower() not in settings.ops_admin_emails:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Ops access required")
    return current_user


_vector_store: RecipeVectorStore | None = None


def get_vector_store() -> RecipeVectorStore | None:
    """Return the shared vector store, retrying construction until it succeeds once.

    Ranking treats ``None`` as a failed store and degrades for that call only.
    """
    global _vector_store
    if _vector_store is None:
        try:
            _vector_store = RecipeVectorStore.from_settings()
        except Exception as exc:  # noqa: BLE001 - chroma raises client specific errors
            logger.warning("Vector store unavailable: %s", exc)
            return None
    return _vector_store


_budget = DailyBudgetTracker()


@lru_cache
def _llm_router() -> LLMRouter:
    return LLMRouter.from_settings(budget=_budget)


def get_llm_router() -> LLMRouter:
    return _llm_router()
