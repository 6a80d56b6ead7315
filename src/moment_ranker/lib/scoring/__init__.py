"""Language-model relevance scoring with a per-user score cache."""

from .cache import SCORE_CACHE_TTL, ScoreCache, ScoreCacheEntry
from .scorer import NEUTRAL_SCORE, SCORING_BATCH_SIZE, score_moments_for_user

__all__ = [
    "NEUTRAL_SCORE",
    "SCORE_CACHE_TTL",
    "SCORING_BATCH_SIZE",
    "ScoreCache",
    "ScoreCacheEntry",
    "score_moments_for_user",
]
