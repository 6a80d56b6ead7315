"""Language-model scoring tier.

Used when vector ranking is unavailable.  Scores the pool against the
user's stored interest profile (cache first, then batched scoring calls)
and fuses the scores with recency.  Without a stored profile the tier
schedules one to be built and falls through to chronological order.
"""

import logging

from ...models import Moment, RankingTier
from ..interests import get_stored_interests
from ..ranking import rank_moments
from ..scoring import score_moments_for_user
from ..summaries import get_moment_summaries
from .base import RankingContext, RankResult, Ranker

logger = logging.getLogger(__name__)


class ScoredRanker(Ranker):
    @property
    def tier(self) -> RankingTier:
        return RankingTier.SCORED

    async def rank(self, ctx: RankingContext, moments: list[Moment]) -> RankResult | None:
        interests = await get_stored_interests(ctx.es, ctx.user_id)
        if not interests:
            logger.info("No interest profile for user %s", ctx.user_id)
            ctx.request_profile_refresh()
            return None

        try:
            summaries = await get_moment_summaries(ctx.es, [m.id for m in moments])
        except Exception:
            logger.exception("Summary lookup failed; scoring captions only")
            summaries = {}

        scores = await score_moments_for_user(
            ctx.ai, ctx.score_cache, ctx.user_id, interests, moments, summaries
        )
        ranked = rank_moments(moments, {s.moment_id: s.score for s in scores}, ctx.now)
        return RankResult(tier=self.tier, moments=[r.moment for r in ranked], ranked=ranked)
