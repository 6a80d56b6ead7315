"""Ranking tiers, from the richest signal down to chronological order.

The recommender evaluates the registered tiers once per request, in
registration order, and never returns to a tier that fell through.
"""

from .base import (
    RankResult,
    Ranker,
    RankingContext,
    list_rankers,
    register_ranker,
)
from .chronological import ChronologicalRanker
from .scored import ScoredRanker
from .vector import VectorRanker

# Register built-in tiers in degradation order
register_ranker(VectorRanker())
register_ranker(ScoredRanker())
register_ranker(ChronologicalRanker())

__all__ = [
    "RankResult",
    "Ranker",
    "RankingContext",
    "list_rankers",
    "register_ranker",
    "ChronologicalRanker",
    "ScoredRanker",
    "VectorRanker",
]
