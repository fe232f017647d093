"""Authentication-related request/response schemas."""

from pydantic import BaseModel

from flavor_monk.schema.user import UserRead


class AccessToken(BaseModel):
    """Bearer token returned after register or login."""
    access_token: str
    token_type: str = "bearer"
    user: UserRead
