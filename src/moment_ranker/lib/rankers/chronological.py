"""Chronological tier: the pool exactly as the content store returned it."""

from ...models import Moment, RankingTier
from .base import RankingContext, RankResult, Ranker


class ChronologicalRanker(Ranker):
    """Always applies, so it must be registered last."""

    @property
    def tier(self) -> RankingTier:
        return RankingTier.CHRONOLOGICAL

    async def rank(self, ctx: RankingContext, moments: list[Moment]) -> RankResult:
        return RankResult(tier=self.tier, moments=list(moments))
