#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
PM2.5 → AQI (US EPA piecewise-linear scale, 24h µg/m³ breakpoints).

Concentrations are truncated to 0.1 µg/m³ first (EPA practice), which closes the
0.1-wide gaps between rows. The first breakpoint whose closed interval contains
the truncated value wins, so a value sitting on a shared boundary maps to the
lower band. Values above the top row or below zero are extrapolated from the last
row instead of failing.
"""

import math
from typing import Dict, List, NamedTuple, Tuple

BANDS: Tuple[str, ...] = ("good", "moderate", "unhealthy", "very-unhealthy", "hazardous")

# Each row: (c_low, c_high, aqi_low, aqi_high, band)
PM25_BREAKPOINTS: List[Tuple[float, float, int, int, str]] = [
    (0.0,   12.0,   0,   50,  "good"),
    (12.1,  35.4,   51,  100, "moderate"),
    (35.5,  55.4,   101, 150, "unhealthy"),
    (55.5,  150.4,  151, 200, "very-unhealthy"),
    (150.5, 500.4,  201, 500, "hazardous"),
]

BREAKPOINTS: Dict[str, List[Tuple[float, float, int, int, str]]] = {
    "pm25": PM25_BREAKPOINTS,
}


class AqiReading(NamedTuple):
    value: int
    band: str


def _round_half_up(x: float) -> int:
    # round() is banker's rounding; published AQI values round .5 up
    return int(math.floor(x + 0.5))


def _truncate_tenth(x: float) -> float:
    # 1e-9 absorbs binary error so 12.1 stays 12.1
    return math.floor(x * 10 + 1e-9) / 10


def pollutant_to_index(concentration: float, pollutant: str = "pm25") -> AqiReading:
    table = BREAKPOINTS.get(pollutant.lower())
    if table is None:
        raise KeyError(f"No AQI breakpoints for pollutant {pollutant!r}")
    c = _truncate_tenth(float(concentration))
    row = next((bp for bp in table if bp[0] <= c <= bp[1]), table[-1])
    lo, hi, aqi_lo, aqi_hi, band = row
    aqi = (aqi_hi - aqi_lo) / (hi - lo) * (c - lo) + aqi_lo
    return AqiReading(_round_half_up(aqi), band)


def pm25_to_aqi(pm25: float) -> AqiReading:
    return pollutant_to_index(pm25, "pm25")
