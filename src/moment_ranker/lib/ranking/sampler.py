"""Weighted shuffle for feed and explore pagination.

Produces a full permutation by repeatedly drawing one remaining item with
probability proportional to its weight (sampling without replacement).
Heavier items tend to come first, yet two calls on the same pool give
different orders.

Build the order once per request and slice it; sampling each page
independently would not show every item exactly once across pages.
"""

import math
import random
from collections.abc import Sequence
from datetime import datetime
from typing import TypeVar

from .fusion import age_in_hours

T = TypeVar("T")

# Decay for discovery weights; separate from the fusion half-life.
SHUFFLE_DECAY_HOURS = 24.0

# Keeps very old items drawable once exp() underflows.
MIN_WEIGHT = 1e-12

# Pools up to this size use the linear roulette scan, O(n^2) overall.
# Larger pools use a Fenwick tree, O(n log n), with the same distribution.
LINEAR_SCAN_LIMIT = 512


def recency_weight(created_at: datetime, now: datetime) -> float:
    """Sampling weight that halves roughly every 17 hours of age."""
    age = max(0.0, age_in_hours(created_at, now))
    return max(MIN_WEIGHT, math.exp(-age / SHUFFLE_DECAY_HOURS))


def _validate(weights: list[float]) -> None:
    for w in weights:
        if not math.isfinite(w) or w <= 0:
            raise ValueError(f"weights must be finite and positive, got {w!r}")


def _linear_shuffle(items: list[T], weights: list[float], rng: random.Random) -> list[T]:
    items = list(items)
    weights = list(weights)
    total = sum(weights)
    order: list[T] = []
    while items:
        target = rng.random() * total
        chosen = len(items) - 1
        cumulative = 0.0
        for idx, w in enumerate(weights):
            cumulative += w
            if target < cumulative:
                chosen = idx
                break
        order.append(items.pop(chosen))
        total -= weights.pop(chosen)
        # Float drift can leave a tiny or negative total behind.
        if items and total <= 0:
            total = sum(weights)
    return order


class _FenwickTree:
    """Prefix sums over weights with point updates and weighted search."""

    def __init__(self, weights: list[float]):
        self.size = len(weights)
        self.tree = [0.0] * (self.size + 1)
        for i, w in enumerate(weights, start=1):
            self.tree[i] += w
            parent = i + (i & -i)
            if parent <= self.size:
                self.tree[parent] += self.tree[i]

    def add(self, index: int, delta: float) -> None:
        i = index + 1
        while i <= self.size:
            self.tree[i] += delta
            i += i & -i

    def find(self, target: float) -> int:
        """Smallest index whose prefix sum exceeds *target*."""
        pos = 0
        step = 1 << self.size.bit_length()
        while step:
            nxt = pos + step
            if nxt <= self.size and self.tree[nxt] <= target:
                pos = nxt
                target -= self.tree[nxt]
            step >>= 1
        return pos


def _fenwick_shuffle(items: list[T], weights: list[float], rng: random.Random) -> list[T]:
    tree = _FenwickTree(weights)
    remaining = list(weights)
    total = sum(weights)
    order: list[T] = []
    for _ in range(len(items)):
        idx = tree.find(rng.random() * total)
        if idx >= len(items) or remaining[idx] == 0.0:
            # Rounding pushed the search past the last live item.
            idx = max(i for i, w in enumerate(remaining) if w > 0.0)
        order.append(items[idx])
        tree.add(idx, -remaining[idx])
        total -= remaining[idx]
        remaining[idx] = 0.0
        if total <= 0:
            total = sum(remaining)
    return order


def weighted_shuffle(
    items_with_weights: Sequence[tuple[T, float]],
    rng: random.Random | None = None,
) -> list[T]:
    """Return every item exactly once, heavier items biased toward the front."""
    if not items_with_weights:
        return []
    items = [item for item, _ in items_with_weights]
    weights = [float(w) for _, w in items_with_weights]
    _validate(weights)

    rng = rng or random.Random()
    if len(items) <= LINEAR_SCAN_LIMIT:
        return _linear_shuffle(items, weights, rng)
    return _fenwick_shuffle(items, weights, rng)


def paginate(items: Sequence[T], offset: int, limit: int) -> list[T]:
    """Contiguous slice ``[offset, offset + limit)`` of a precomputed order."""
    if offset < 0 or limit < 0:
        raise ValueError("offset and limit must be non-negative")
    return list(items[offset:offset + limit])
