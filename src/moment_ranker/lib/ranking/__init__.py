"""Score fusion and weighted-random ordering of moments."""

from .fusion import combined_score, fuse, rank_moments, recency_score
from .sampler import paginate, recency_weight, weighted_shuffle

__all__ = [
    "combined_score",
    "fuse",
    "paginate",
    "rank_moments",
    "recency_score",
    "recency_weight",
    "weighted_shuffle",
]
