"""Account lookup, registration, and password login."""

from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flavor_monk.core.security import get_password_hash, verify_password
from flavor_monk.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: str | uuid.UUID | None) -> User | None:
    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        return None
    return await session.get(User, user_uuid)


async def create_user(session: AsyncSession, email: str, password: str, display_name: str | None = None) -> User:
    """Register an account; the questionnaire is filled in separately."""
    if await get_user_by_email(session, email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    address = normalize_email(email)
    user = User(
        email=address,
        hashed_password=get_password_hash(password),
        display_name=(display_name or "").strip() or address.split("@", 1)[0],
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def authenticate_user(session: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(session, email)
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return user
