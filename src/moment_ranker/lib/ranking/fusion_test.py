"""Tests for relevance/recency rank fusion."""

import math
from datetime import timedelta

import pytest

from ...conftest import NOW, make_moment
from .fusion import (
    DEFAULT_RELEVANCE,
    combined_score,
    fuse,
    rank_moments,
    recency_score,
)


class TestRecencyScore:
    def test_brand_new_is_one(self):
        assert recency_score(NOW, NOW) == 1.0

    def test_decays_with_48_hour_constant(self):
        assert recency_score(NOW - timedelta(hours=48), NOW) == pytest.approx(math.exp(-1))

    def test_strictly_decreasing_with_age(self):
        ages = [0, 1, 6, 24, 72, 500]
        scores = [recency_score(NOW - timedelta(hours=a), NOW) for a in ages]
        assert all(a > b for a, b in zip(scores, scores[1:]))

    def test_future_timestamp_counts_as_new(self):
        assert recency_score(NOW + timedelta(hours=3), NOW) == 1.0

    def test_naive_timestamps_are_utc(self):
        naive = (NOW - timedelta(hours=48)).replace(tzinfo=None)
        assert recency_score(naive, NOW) == pytest.approx(math.exp(-1))


class TestFuse:
    def test_weights(self):
        assert combined_score(1.0, 0.0) == pytest.approx(0.6)
        assert combined_score(0.0, 1.0) == pytest.approx(0.4)
        assert fuse(0.5, NOW, NOW) == pytest.approx(0.5 * 0.6 + 0.4)

    def test_monotonic_in_relevance(self):
        created = NOW - timedelta(hours=10)
        values = [fuse(r / 10, created, NOW) for r in range(11)]
        assert all(a <= b for a, b in zip(values, values[1:]))

    def test_monotonic_in_recency(self):
        values = [fuse(0.7, NOW - timedelta(hours=h), NOW) for h in (100, 50, 10, 1, 0)]
        assert all(a <= b for a, b in zip(values, values[1:]))

    def test_stays_in_unit_interval(self):
        assert 0.0 <= fuse(1.0, NOW, NOW) <= 1.0
        assert 0.0 <= fuse(0.0, NOW - timedelta(days=365), NOW) <= 1.0


class TestRankMoments:
    def test_sorts_by_combined_score(self):
        moments = [make_moment(1), make_moment(2), make_moment(3)]
        ranked = rank_moments(moments, {"m1": 0.1, "m2": 0.9, "m3": 0.5}, NOW)
        assert [r.moment.id for r in ranked] == ["m2", "m3", "m1"]
        assert ranked[0].relevance_score == 0.9
        assert ranked[0].recency_score == 1.0
        assert ranked[0].combined_score == pytest.approx(0.9 * 0.6 + 0.4)

    def test_ties_keep_pool_order(self):
        moments = [make_moment(i) for i in range(5)]
        ranked = rank_moments(moments, {}, NOW)
        assert [r.moment.id for r in ranked] == ["m0", "m1", "m2", "m3", "m4"]

    def test_missing_relevance_uses_default(self):
        ranked = rank_moments([make_moment(1)], {}, NOW)
        assert ranked[0].relevance_score == DEFAULT_RELEVANCE

    def test_recency_breaks_equal_relevance(self):
        moments = [make_moment(1, hours_old=30), make_moment(2, hours_old=2)]
        ranked = rank_moments(moments, {"m1": 0.5, "m2": 0.5}, NOW)
        assert [r.moment.id for r in ranked] == ["m2", "m1"]
