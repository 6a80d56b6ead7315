"""Base abstraction for ranking tiers.

Each tier has a unique name and an async ``rank`` method that either returns
a :class:`RankResult` or ``None`` when its signal is unavailable for the
request.  Tiers are registered in degradation order so the recommender can
walk them from the richest signal to plain chronological order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from ...models import Moment, RankedMoment, RankingTier
from ..maintenance import ProfileRefresher
from ..scoring import ScoreCache


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

@dataclass
class RankingContext:
    """Collaborators and request state shared by every tier."""

    es: object
    ai: object
    score_cache: ScoreCache
    user_id: str
    now: datetime
    coverage_threshold: float = 0.3
    profile_refresher: ProfileRefresher | None = None

    def request_profile_refresh(self) -> None:
        """Ask for the viewer's embedding and interest profile to be built."""
        if self.profile_refresher is not None:
            self.profile_refresher.schedule(self.es, self.ai, self.user_id)


class RankResult(BaseModel):
    """The output of one ranking tier."""

    tier: RankingTier = Field(..., description="Tier that produced the ordering")
    moments: list[Moment] = Field(default_factory=list)
    ranked: list[RankedMoment] = Field(
        default_factory=list, description="Per-moment scores; empty when unranked"
    )


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class Ranker(ABC):
    """Abstract base class for ranking tiers.

    Subclasses must implement ``tier`` (property) and ``rank``.
    """

    @property
    @abstractmethod
    def tier(self) -> RankingTier:
        ...

    @property
    def name(self) -> str:
        return self.tier.value

    @abstractmethod
    async def rank(self, ctx: RankingContext, moments: list[Moment]) -> RankResult | None:
        """Order *moments* for ``ctx.user_id``, or ``None`` to fall through."""
        ...


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_rankers: list[Ranker] = []


def register_ranker(ranker: Ranker) -> None:
    """Append a tier; registration order is degradation order."""
    if any(r.name == ranker.name for r in _rankers):
        raise ValueError(f"Ranker already registered: {ranker.name}")
    _rankers.append(ranker)


def list_rankers() -> list[Ranker]:
    return list(_rankers)
