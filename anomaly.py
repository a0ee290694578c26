#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Robust outlier score for a station's most recent reading.

z = |x_last - median| / (1.4826 * MAD + eps), clamped at 5 and scaled to 0–100.
1.4826 * MAD estimates the standard deviation of normal data, so the clamp means
"five sigma" whatever the pollutant's scale.
"""

from typing import Iterable, Sequence

import numpy as np

from models import SeriesPoint

MAD_TO_SIGMA = 1.4826
EPS = 1e-6
Z_CAP = 5.0


def _finite_values(series: Iterable[SeriesPoint]) -> np.ndarray:
    vals = np.asarray([p.value for p in series], dtype=float)
    return vals[np.isfinite(vals)]


def robust_z(values: Sequence[float]) -> float:
    """Robust z of the last element against the whole array (already filtered, time-ordered)."""
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return 0.0
    med = float(np.median(x))
    mad = float(np.median(np.abs(x - med)))
    return abs(float(x[-1]) - med) / (MAD_TO_SIGMA * mad + EPS)


def score_anomaly(series: Sequence[SeriesPoint]) -> int:
    values = _finite_values(series)
    if values.size == 0:
        return 0
    z = min(robust_z(values), Z_CAP)
    return int(np.floor(z / Z_CAP * 100 + 0.5))
