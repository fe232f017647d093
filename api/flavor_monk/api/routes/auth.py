from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.api.deps import get_db
from flavor_monk.core.config import settings
from flavor_monk.core.security import create_access_token
from flavor_monk.models.user import User
from flavor_monk.schema.auth import AccessToken
from flavor_monk.schema.user import UserCreate, UserLogin, UserRead
from flavor_monk.services import user_service

router = APIRouter()

ACCESS_COOKIE_NAME = "access_token"


def set_auth_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        ACCESS_COOKIE_NAME,
        access_token,
        max_age=settings.access_token_expires_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.environment.lower() == "production",
        path="/",
    )


def _token_response(response: Response, user: User) -> AccessToken:
    token = AccessToken(access_token=create_access_token(str(user.id)), user=UserRead.model_validate(user))
    set_auth_cookie(response, token.access_token)
    return token


@router.post("/register", response_model=AccessToken)
async def register(payload: UserCreate, response: Response, session: AsyncSession = Depends(get_db)) -> AccessToken:
    user = await user_service.create_user(
        session, email=payload.email, password=payload.password, display_name=payload.display_name
    )
    return _token_response(response, user)


@router.post("/login", response_model=AccessToken)
async def login(payload: UserLogin, response: Response, session: AsyncSession = Depends(get_db)) -> AccessToken:
    user = await user_service.authenticate_user(session, payload.email, payload.password)
    return _token_response(response, user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> Response:
    response.delete_cookie(ACCESS_COOKIE_NAME, path="/")
    response.status_code = status.HTTP_204_NO_CONTENT
    return response
