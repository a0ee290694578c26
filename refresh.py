#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
One refresh cycle: city → stations → (center, weather) ‖ (top-K history → anomaly) → merged snapshot.

idle → resolving → enriching → merged, or resolving → failed. Idle is the state
before the first cycle; merged and failed are where the refresher rests until the
next cycle starts. Only a directory failure fails the cycle; weather and
per-station history failures leave gaps.

Cycles carry a generation number. Starting a new cycle supersedes any cycle still
in flight: the older one stops launching history fetches, never publishes and
no longer touches `state` or `last_error`.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from anomaly import score_anomaly
from config import get_config
from errors import EnviroWatchError, NotFound, Partial
from geo import CityRegion, estimate_center, load_regions
from models import Center, FetchOutcome, RefreshResult, Station, WeatherSnapshot
from openaq_api import OpenAQClient
from weather_api import fetch_current_weather

log = logging.getLogger("refresh")


class RefreshState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    ENRICHING = "enriching"
    MERGED = "merged"
    FAILED = "failed"


class ResultSlot:
    """Holds the latest published RefreshResult; swaps whole snapshots only."""

    def __init__(self):
        self._lock = threading.Lock()
        self._result: Optional[RefreshResult] = None
        self._generation = 0

    def get(self) -> Optional[RefreshResult]:
        with self._lock:
            return self._result

    def publish(self, result: RefreshResult, generation: int) -> bool:
        with self._lock:
            if generation < self._generation:
                return False
            self._result = result
            self._generation = generation
            return True


def top_k_by_index(stations: Sequence[Station], k: int) -> List[Station]:
    # Stable: ties keep directory order
    return sorted(stations, key=lambda s: s.aqi, reverse=True)[:max(0, k)]


class Refresher:
    def __init__(self, client: Optional[OpenAQClient] = None,
                 weather_fn: Callable[[float, float], WeatherSnapshot] = fetch_current_weather,
                 regions: Optional[Sequence[CityRegion]] = None,
                 top_k: Optional[int] = None, pollutant: Optional[str] = None,
                 default_center: Optional[Center] = None, max_workers: Optional[int] = None,
                 slot: Optional[ResultSlot] = None):
        cfg = get_config()
        self.client = client or OpenAQClient()
        self.weather_fn = weather_fn
        self.regions = list(regions) if regions is not None else load_regions(cfg["CITY_REGIONS"])
        self.top_k = cfg["TOP_K"] if top_k is None else top_k
        self.pollutant = (pollutant or cfg["PRIMARY_POLLUTANT"]).lower()
        self.default_center = default_center or Center(*cfg["DEFAULT_CENTER"])
        self.max_workers = max_workers or cfg["OPENAQ_CONCURRENCY"]
        self.slot = slot or ResultSlot()
        self.state = RefreshState.IDLE
        self.last_error: Optional[EnviroWatchError] = None
        self._gen_lock = threading.Lock()
        self._gen = 0

    @property
    def current(self) -> Optional[RefreshResult]:
        return self.slot.get()

    def _begin(self) -> int:
        with self._gen_lock:
            self._gen += 1
            return self._gen

    def is_current(self, generation: int) -> bool:
        with self._gen_lock:
            return generation == self._gen

    _KEEP = object()

    def _transition(self, generation: int, state: RefreshState, error=_KEEP) -> bool:
        # Superseded cycles leave state and last_error to the newer cycle
        with self._gen_lock:
            if generation != self._gen:
                return False
            self.state = state
            if error is not Refresher._KEEP:
                self.last_error = error
            return True

    # ---------- per-item enrichment ----------
    def _score_station(self, station: Station, generation: int) -> FetchOutcome[int]:
        if not self.is_current(generation):
            return FetchOutcome.skip("superseded")
        try:
            series = self.client.fetch_history(station.id, self.pollutant)
        except NotFound as e:
            return FetchOutcome.skip(str(e))
        except EnviroWatchError as e:
            return FetchOutcome.error(str(e))
        if not series:
            return FetchOutcome.skip("no measurements in window")
        return FetchOutcome.ok(score_anomaly(series))

    def _fetch_weather(self, center: Center) -> FetchOutcome[WeatherSnapshot]:
        try:
            return FetchOutcome.ok(self.weather_fn(center.lat, center.lon))
        except EnviroWatchError as e:
            return FetchOutcome.error(str(e))

    # ---------- cycle ----------
    def refresh(self, city: str, previous_center: Optional[Center] = None) -> RefreshResult:
        """Run one cycle. Raises the directory error if resolution fails."""
        generation = self._begin()
        previous_center = Center(*previous_center) if previous_center is not None else self.default_center
        partial = Partial()

        self._transition(generation, RefreshState.RESOLVING)
        try:
            outcomes = self.client.resolve_station_outcomes(city, self.pollutant)
        except EnviroWatchError as e:
            self._transition(generation, RefreshState.FAILED, e)
            log.error(f"[Refresh] station resolution failed for {city!r}: {e}", extra={"city": city})
            raise
        stations: List[Station] = []
        for loc_id, out in outcomes:
            if out.is_ok:
                stations.append(out.value)
            elif out.status == "error":
                partial.add(f"latest:{loc_id}", out.reason)

        center = estimate_center(city, stations, previous_center, self.regions)

        self._transition(generation, RefreshState.ENRICHING)
        top = top_k_by_index(stations, self.top_k)
        scores: Dict[str, int] = {}
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(top) + 1))) as ex:
            wfut = ex.submit(self._fetch_weather, center)
            hfuts = {ex.submit(self._score_station, s, generation): s.id for s in top}
            for fut in as_completed(hfuts):
                sid = hfuts[fut]
                out = fut.result()
                if out.is_ok:
                    scores[sid] = out.value
                elif out.status == "error":
                    partial.add(f"history:{sid}", out.reason)
            wout = wfut.result()
        if not wout.is_ok:
            partial.add("weather", wout.reason)

        merged = tuple(s.with_anomaly(scores[s.id]) if s.id in scores else s for s in stations)
        result = RefreshResult(city=city, stations=merged, center=center,
                               weather=wout.value, partial=partial)

        if not (self.is_current(generation) and self.slot.publish(result, generation)):
            log.info(f"[Refresh] cycle {generation} for {city!r} superseded; not published", extra={"city": city})
            return result
        self._transition(generation, RefreshState.MERGED, None)
        log.info(f"[Refresh] {city!r}: {len(merged)} stations, {len(scores)} scored, "
                 f"weather={'yes' if result.weather else 'no'}, dropped={len(partial.dropped)}",
                 extra={"city": city})
        return result
