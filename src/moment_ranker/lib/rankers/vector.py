"""Vector-similarity tier.

Ranks the pool by fusing embedding similarity with recency.  The tier only
applies when the user has an embedding and nearest-neighbour hits cover at
least ``coverage_threshold`` of the pool; otherwise a small matched subset
would float to the top while the rest stays unordered.
"""

import logging

from ...models import Moment, RankingTier
from ..embeddings import has_user_embedding
from ..ranking import rank_moments
from ..similarity import find_similar_moments, similarity_to_relevance
from .base import RankingContext, RankResult, Ranker

logger = logging.getLogger(__name__)


def coverage(hit_ids: set[str], moments: list[Moment]) -> float:
    """Fraction of the pool that has a similarity hit."""
    if not moments:
        return 0.0
    return sum(1 for m in moments if m.id in hit_ids) / len(moments)


class VectorRanker(Ranker):
    @property
    def tier(self) -> RankingTier:
        return RankingTier.VECTOR

    async def rank(self, ctx: RankingContext, moments: list[Moment]) -> RankResult | None:
        if not await has_user_embedding(ctx.es, ctx.user_id):
            ctx.request_profile_refresh()
            return None

        pool_ids = [m.id for m in moments]
        similar = await find_similar_moments(
            ctx.es,
            ctx.user_id,
            limit=len(moments),
            candidate_ids=pool_ids,
        )
        if not similar:
            return None

        pool = set(pool_ids)
        relevance = {
            s.moment_id: similarity_to_relevance(s.similarity)
            for s in similar
            if s.moment_id in pool
        }
        covered = coverage(set(relevance), moments)
        if covered < ctx.coverage_threshold:
            logger.info(
                "Vector coverage %.2f below %.2f for user %s",
                covered,
                ctx.coverage_threshold,
                ctx.user_id,
            )
            return None

        ranked = rank_moments(moments, relevance, ctx.now)
        return RankResult(tier=self.tier, moments=[r.moment for r in ranked], ranked=ranked)
