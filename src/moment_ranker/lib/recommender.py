"""Personalized ordering of a candidate pool.

Walks the registered ranking tiers (vector similarity, language-model
scoring, chronological) once per request and returns the first ordering a
tier produces.  A tier that raises is logged and skipped, never retried.
The recommender itself never raises: in the worst case the pool comes back
in the order it arrived.
"""

import logging
import os
from datetime import datetime, timezone

from ..models import Moment, RankingTier
from .rankers import RankingContext, RankResult, list_rankers
from .maintenance import ProfileRefresher
from .scoring import ScoreCache

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE_THRESHOLD = 0.3


def get_coverage_threshold() -> float:
    """Share of the pool vector hits must cover before vector ranking is used."""
    raw = os.environ.get("SIMILARITY_COVERAGE_THRESHOLD")
    if not raw:
        return DEFAULT_COVERAGE_THRESHOLD
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid SIMILARITY_COVERAGE_THRESHOLD=%r", raw)
        return DEFAULT_COVERAGE_THRESHOLD
    return max(0.0, min(1.0, value))


async def rank_for_user(
    es,
    ai,
    score_cache: ScoreCache,
    user_id: str,
    moments: list[Moment],
    now: datetime | None = None,
    coverage_threshold: float | None = None,
    profile_refresher: ProfileRefresher | None = None,
) -> RankResult:
    """Order *moments* for *user_id* and report which tier did it.

    When *profile_refresher* is given, a viewer without an embedding or
    interest profile gets one built in the background for later requests.
    """
    if len(moments) <= 1:
        return RankResult(tier=RankingTier.CHRONOLOGICAL, moments=list(moments))

    ctx = RankingContext(
        es=es,
        ai=ai,
        score_cache=score_cache,
        user_id=user_id,
        now=now or datetime.now(timezone.utc),
        coverage_threshold=(
            get_coverage_threshold() if coverage_threshold is None else coverage_threshold
        ),
        profile_refresher=profile_refresher,
    )

    for ranker in list_rankers():
        try:
            result = await ranker.rank(ctx, moments)
        except Exception:
            logger.exception("Ranking tier '%s' failed for user %s", ranker.name, user_id)
            continue
        if result is not None:
            logger.info(
                "Ranked %d moments for user %s with tier '%s'",
                len(moments),
                user_id,
                result.tier.value,
            )
            return result

    return RankResult(tier=RankingTier.CHRONOLOGICAL, moments=list(moments))


async def get_recommended_posts(
    es,
    ai,
    score_cache: ScoreCache,
    user_id: str,
    moments: list[Moment],
    now: datetime | None = None,
    profile_refresher: ProfileRefresher | None = None,
) -> list[Moment]:
    """Return *moments* in recommended order for *user_id*."""
    result = await rank_for_user(
        es, ai, score_cache, user_id, moments, now=now, profile_refresher=profile_refresher
    )
    return result.moments
