"""
Tests for the robust (median/MAD) outlier score.
"""
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from anomaly import robust_z, score_anomaly
from models import SeriesPoint

T0 = datetime(2026, 10, 12, tzinfo=timezone.utc)


def series(values):
    return [SeriesPoint(T0 + timedelta(hours=i), float(v)) for i, v in enumerate(values)]


class TestScoreAnomaly:
    def test_empty_series_scores_zero(self):
        assert score_anomaly([]) == 0

    def test_all_invalid_scores_zero(self):
        assert score_anomaly(series([float("nan"), float("inf"), float("-inf")])) == 0

    def test_constant_series_scores_zero(self):
        assert score_anomaly(series([7.5] * 20)) == 0

    def test_single_point_scores_zero(self):
        assert score_anomaly(series([42.0])) == 0

    def test_spike_on_flat_history_scores_max(self):
        assert score_anomaly(series([10, 10, 10, 10, 10, 10, 100])) == 100

    def test_moderate_deviation(self):
        # median 3, MAD 1 → z = 2 / 1.4826 ≈ 1.349 → 27
        assert score_anomaly(series([1, 2, 3, 4, 5])) == 27

    def test_last_valid_value_is_the_test_point(self):
        # trailing NaN is dropped, so the spike before it is the latest reading
        assert score_anomaly(series([10, 10, 10, 10, 100, float("nan")])) == 100

    def test_old_outlier_does_not_flag_latest(self):
        assert score_anomaly(series([100, 10, 10, 10, 10, 10, 10])) == 0

    def test_scale_independent(self):
        base = [3, 5, 4, 6, 5, 4, 9]
        assert score_anomaly(series(base)) == score_anomaly(series([v * 1000 for v in base]))

    def test_always_int_in_range(self):
        rng = np.random.default_rng(7)
        for _ in range(200):
            vals = rng.normal(50, 15, size=rng.integers(1, 40)).tolist()
            s = score_anomaly(series(vals))
            assert isinstance(s, int)
            assert 0 <= s <= 100


class TestRobustZ:
    def test_even_count_median(self):
        # median of [1,2,3,4] = 2.5, MAD = 1.0
        assert robust_z([1, 2, 3, 4]) == pytest.approx(1.5 / (1.4826 + 1e-6))

    def test_empty(self):
        assert robust_z([]) == 0.0
