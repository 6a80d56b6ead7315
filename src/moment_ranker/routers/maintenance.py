"""Maintenance router – cache administration and derived-data upkeep.

Refresh and delete requests are acknowledged with 202 and run as background
tasks, off the serving path.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from pydantic import BaseModel

from ..lib.maintenance import (
    collect_stats,
    delete_moment_artifacts,
    refresh_moment,
    refresh_user,
)
from ..security import verify_admin_key

router = APIRouter(tags=["maintenance"], dependencies=[Depends(verify_admin_key)])

logger = logging.getLogger(__name__)


class CacheClearResponse(BaseModel):
    cleared: str


class TaskAcceptedResponse(BaseModel):
    task: str
    target: str


class StatsResponse(BaseModel):
    moment_embeddings: int
    user_embeddings: int
    interest_profiles: int
    cached_scores: int


# ---------------------------------------------------------------------------
# Score cache
# ---------------------------------------------------------------------------

@router.delete("/recommendations/cache/{user_id}", response_model=CacheClearResponse)
async def clear_score_cache(request: Request, user_id: str) -> CacheClearResponse:
    request.app.state.score_cache.clear_user(user_id)
    logger.info("Cleared score cache for user %s", user_id)
    return CacheClearResponse(cleared=user_id)


@router.delete("/recommendations/cache", response_model=CacheClearResponse)
async def clear_all_score_caches(request: Request) -> CacheClearResponse:
    request.app.state.score_cache.clear_all()
    logger.info("Cleared all score caches")
    return CacheClearResponse(cleared="all")


# ---------------------------------------------------------------------------
# Derived data
# ---------------------------------------------------------------------------

@router.post(
    "/maintenance/moments/{moment_id}/refresh",
    response_model=TaskAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def maintenance_refresh_moment(
    request: Request, moment_id: str, background_tasks: BackgroundTasks
) -> TaskAcceptedResponse:
    state = request.app.state
    background_tasks.add_task(refresh_moment, state.es, state.ai, state.score_cache, moment_id)
    return TaskAcceptedResponse(task="refresh_moment", target=moment_id)


@router.delete(
    "/maintenance/moments/{moment_id}",
    response_model=TaskAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def maintenance_delete_moment(
    request: Request, moment_id: str, background_tasks: BackgroundTasks
) -> TaskAcceptedResponse:
    state = request.app.state
    # Evict now so the next request cannot read a score for deleted content.
    state.score_cache.evict_moment(moment_id)
    background_tasks.add_task(delete_moment_artifacts, state.es, state.score_cache, moment_id)
    return TaskAcceptedResponse(task="delete_moment", target=moment_id)


@router.post(
    "/maintenance/users/{user_id}/refresh",
    response_model=TaskAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def maintenance_refresh_user(
    request: Request, user_id: str, background_tasks: BackgroundTasks
) -> TaskAcceptedResponse:
    state = request.app.state
    background_tasks.add_task(refresh_user, state.es, state.ai, user_id)
    return TaskAcceptedResponse(task="refresh_user", target=user_id)


@router.get("/maintenance/stats", response_model=StatsResponse)
async def maintenance_stats(request: Request) -> StatsResponse:
    state = request.app.state
    try:
        stats = await collect_stats(state.es, state.score_cache)
    except Exception as exc:
        logger.exception("Failed to collect maintenance stats")
        raise HTTPException(status_code=502, detail="Elasticsearch request failed") from exc
    return StatsResponse(**stats)
