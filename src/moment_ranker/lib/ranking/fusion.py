"""Rank fusion of relevance and recency.

    recency  = exp(-age_hours / RECENCY_DECAY_HOURS)
    combined = RELEVANCE_WEIGHT * relevance + RECENCY_WEIGHT * recency

The weights and decay constant are fixed ranking policy.
"""

import math
from datetime import datetime, timezone

from ...models import Moment, RankedMoment

RELEVANCE_WEIGHT = 0.6
RECENCY_WEIGHT = 0.4
RECENCY_DECAY_HOURS = 48.0

# Relevance assumed for a moment the active signal did not score.  This is a
# neutral relevance, not a neutral similarity of 0.5 (which maps to 0.75).
DEFAULT_RELEVANCE = 0.5


def age_in_hours(created_at: datetime, now: datetime) -> float:
    """Age of a moment in hours; naive timestamps are read as UTC."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - created_at).total_seconds() / 3600.0


def recency_score(
    created_at: datetime,
    now: datetime,
    decay_hours: float = RECENCY_DECAY_HOURS,
) -> float:
    """Exponential decay of age, in (0, 1].  Future timestamps count as new."""
    age = max(0.0, age_in_hours(created_at, now))
    return math.exp(-age / decay_hours)


def combined_score(relevance: float, recency: float) -> float:
    relevance = max(0.0, min(1.0, relevance))
    return min(1.0, relevance * RELEVANCE_WEIGHT + recency * RECENCY_WEIGHT)


def fuse(relevance: float, created_at: datetime, now: datetime | None = None) -> float:
    """Combined ranking score for one moment."""
    now = now or datetime.now(timezone.utc)
    return combined_score(relevance, recency_score(created_at, now))


def rank_moments(
    moments: list[Moment],
    relevance: dict[str, float],
    now: datetime | None = None,
) -> list[RankedMoment]:
    """Score every moment and sort by combined score, highest first.

    Moments absent from *relevance* get ``DEFAULT_RELEVANCE``.  The sort is
    stable, so ties keep their pool order.
    """
    now = now or datetime.now(timezone.utc)
    ranked: list[RankedMoment] = []
    for moment in moments:
        rel = max(0.0, min(1.0, relevance.get(moment.id, DEFAULT_RELEVANCE)))
        rec = recency_score(moment.created_at, now)
        ranked.append(
            RankedMoment(
                moment=moment,
                relevance_score=rel,
                recency_score=rec,
                combined_score=combined_score(rel, rec),
            )
        )
    ranked.sort(key=lambda r: -r.combined_score)
    return ranked
