#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Dashboard state (city, filters, selection, last snapshot) as an explicit object."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from config import get_config
from errors import EnviroWatchError
from models import Center, RefreshResult, Station

ANOMALY_FLAG_SCORE = get_config()["ANOMALY_FLAG_SCORE"]


def filter_stations(stations: Sequence[Station], aqi_threshold: Optional[int] = None,
                    anomalies_only: bool = False, flag_score: int = ANOMALY_FLAG_SCORE) -> List[Station]:
    out = list(stations)
    if aqi_threshold is not None:
        out = [s for s in out if s.aqi > aqi_threshold]
    if anomalies_only:
        out = [s for s in out if (s.anomaly or 0) >= flag_score]
    return out


def summarize(stations: Sequence[Station], flag_score: int = ANOMALY_FLAG_SCORE) -> Dict[str, Any]:
    n = len(stations)
    return {
        "avgAqi": (sum(s.aqi for s in stations) / n) if n else 0.0,
        "stations": n,
        "anomalies": sum(1 for s in stations if (s.anomaly or 0) >= flag_score),
    }


def _default_center() -> Center:
    return Center(*get_config()["DEFAULT_CENTER"])


@dataclass
class DashboardState:
    city: str = field(default_factory=lambda: get_config()["DEFAULT_CITY"])
    center: Center = field(default_factory=_default_center)
    radius_km: float = 3.0
    aqi_threshold: Optional[int] = None
    anomalies_only: bool = False
    selected_id: Optional[str] = None
    result: Optional[RefreshResult] = None
    error: Optional[str] = None
    last_updated: Optional[datetime] = None

    @property
    def stations(self) -> List[Station]:
        return list(self.result.stations) if self.result else []

    def visible_stations(self) -> List[Station]:
        return filter_stations(self.stations, self.aqi_threshold, self.anomalies_only)

    def selected(self) -> Optional[Station]:
        if self.result is None or self.selected_id is None:
            return None
        return self.result.station(self.selected_id)

    def apply(self, refresher) -> Optional[RefreshResult]:
        """Refresh for the current city. On failure the previous snapshot is kept and `error` is set."""
        try:
            result = refresher.refresh(self.city, self.center)
        except EnviroWatchError as e:
            self.error = str(e)
            return None
        self.result = result
        self.center = result.center
        self.last_updated = result.generated_at
        self.error = None
        return result
