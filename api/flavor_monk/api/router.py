"""API router composition for all route groups."""

from fastapi import APIRouter

from .routes import assistant, auth, ops, recipes, recommendations, users

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, tags=["users"])
api_router.include_router(recipes.router, prefix="/recipes", tags=["recipes"])
api_router.include_router(recommendations.router, prefix="/recommendations", tags=["recommendations"])
api_router.include_router(assistant.router, prefix="/assistant", tags=["assistant"])
api_router.include_router(ops.router, prefix="/ops", tags=["ops"])
