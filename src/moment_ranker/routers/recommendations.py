"""Recommendations router – personalized ranking and weighted shuffling.

POST /recommendations/rank
    Order a caller-supplied pool for one user.

POST /recommendations/shuffle
    Weighted-random page of a caller-supplied pool.
"""

import logging
import random
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from ..lib.ranking import paginate, recency_weight, weighted_shuffle
from ..lib.recommender import rank_for_user
from ..models import Moment, RankedMoment, RankingTier
from ..security import verify_api_key

router = APIRouter(tags=["recommendations"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)

MAX_POOL_SIZE = 1000


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class RankRequest(BaseModel):
    """Request body for the rank endpoint."""

    user_id: str = Field(..., description="Id of the viewer")
    moments: list[Moment] = Field(
        ..., max_length=MAX_POOL_SIZE, description="Candidate pool, newest first"
    )


class RankResponse(BaseModel):
    tier: RankingTier
    moments: list[Moment]
    scores: list[RankedMoment] = Field(
        default_factory=list, description="Per-moment scores when a ranked tier was used"
    )


class ShuffleRequest(BaseModel):
    """Request body for the shuffle endpoint."""

    moments: list[Moment] = Field(..., max_length=MAX_POOL_SIZE)
    offset: int = Field(0, ge=0)
    limit: int = Field(20, ge=1, le=100)
    seed: int | None = Field(
        None,
        description=(
            "Replays the same order across page requests. "
            "If omitted, a fresh seed is generated and returned."
        ),
    )


class PageResponse(BaseModel):
    moments: list[Moment]
    offset: int
    next_offset: int | None = Field(None, description="Offset of the next page, if any")
    total: int
    seed: int | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def new_seed() -> int:
    return random.SystemRandom().randrange(2**31)


def shuffle_page(
    moments: list[Moment],
    offset: int,
    limit: int,
    seed: int,
    now: datetime | None = None,
) -> PageResponse:
    """Build the full weighted order once, then slice one page from it."""
    now = now or datetime.now(timezone.utc)
    order = weighted_shuffle(
        [(m, recency_weight(m.created_at, now)) for m in moments],
        rng=random.Random(seed),
    )
    page = paginate(order, offset, limit)
    next_offset = offset + limit if offset + limit < len(order) else None
    return PageResponse(
        moments=page, offset=offset, next_offset=next_offset, total=len(order), seed=seed
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/recommendations/rank", response_model=RankResponse)
async def recommendations_rank(request: Request, payload: RankRequest) -> RankResponse:
    """Order the pool for the user, degrading silently to chronological order."""
    state = request.app.state
    result = await rank_for_user(
        state.es,
        state.ai,
        state.score_cache,
        payload.user_id,
        payload.moments,
        profile_refresher=state.profile_refresher,
    )
    return RankResponse(tier=result.tier, moments=result.moments, scores=result.ranked)


@router.post("/recommendations/shuffle", response_model=PageResponse)
async def recommendations_shuffle(payload: ShuffleRequest) -> PageResponse:
    """Return one page of a recency-weighted random order of the pool."""
    seed = payload.seed if payload.seed is not None else new_seed()
    return shuffle_page(payload.moments, payload.offset, payload.limit, seed)

