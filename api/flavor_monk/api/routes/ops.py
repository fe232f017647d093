from __future__ import annotations

from fastapi import APIRouter, Depends

from flavor_monk.api.deps import get_llm_router, require_ops_admin
from flavor_monk.llm.router import LLMRouter
from flavor_monk.models.user import User
from flavor_monk.recommendation.observability import store_monitor
from flavor_monk.services.task_queue import task_queue

router = APIRouter()


@router.get("/queues")
async def queue_health(_: User = Depends(require_ops_admin)) -> dict:
    """
    Minimal operations dashboard for Redis/RQ health.

    Requires an ops admin to avoid leaking operational data.
    """

    return task_queue.snapshot()


@router.get("/stores")
async def store_health(_: User = Depends(require_ops_admin)) -> dict:
    """Raw per-store call metrics and circuit state."""
    return await store_monitor.snapshot()


@router.get("/llm-budget")
async def llm_budget(
    _: User = Depends(require_ops_admin),
    llm_router: LLMRouter = Depends(get_llm_router),
) -> dict:
    return llm_router.budget.snapshot()
