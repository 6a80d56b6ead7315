"""Feed and explore router – paginated surfaces over the content store.

GET /feed
    Newest moments, personally ranked for the viewer, one page at a time.

GET /explore
    Newest moments in a recency-weighted random order.  The response carries
    the seed; passing it back on the next request continues the same order.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..lib.content import DEFAULT_POOL_SIZE, list_moments
from ..lib.ranking import paginate
from ..lib.recommender import rank_for_user
from ..models import Moment
from ..security import verify_api_key
from .recommendations import PageResponse, new_seed, shuffle_page

router = APIRouter(tags=["feed"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


async def _load_pool(request: Request) -> list[Moment]:
    try:
        return await list_moments(request.app.state.es, DEFAULT_POOL_SIZE)
    except Exception as exc:
        logger.exception("Failed to load moments from the content store")
        raise HTTPException(status_code=502, detail="Content store request failed") from exc


@router.get("/feed", response_model=PageResponse)
async def feed(
    request: Request,
    user_id: str = Query(..., description="Id of the viewer"),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PageResponse:
    pool = await _load_pool(request)
    state = request.app.state
    result = await rank_for_user(
        state.es,
        state.ai,
        state.score_cache,
        user_id,
        pool,
        profile_refresher=state.profile_refresher,
    )
    page = paginate(result.moments, offset, limit)
    next_offset = offset + limit if offset + limit < len(result.moments) else None
    return PageResponse(
        moments=page, offset=offset, next_offset=next_offset, total=len(result.moments)
    )


@router.get("/explore", response_model=PageResponse)
async def explore(
    request: Request,
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    seed: int | None = Query(None, description="Seed returned by the previous page"),
) -> PageResponse:
    pool = await _load_pool(request)
    return shuffle_page(pool, offset, limit, seed if seed is not None else new_seed())
