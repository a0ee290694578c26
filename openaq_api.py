#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
OpenAQ v3 helpers for the station dashboard.
- City → stations: locality lookup, then per-location /latest in parallel.
- Station → 7-day series for its primary-pollutant sensor, always time-ascending.

Upstream shapes are validated with pydantic; a shape mismatch fails that one call
with MalformedResponse and never leaks into the other concurrent lookups.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, ValidationError

from aqi import BREAKPOINTS
from config import get_config, US_CITY_NAMES
from errors import EnviroWatchError, MalformedResponse, NotFound, UpstreamUnavailable
from models import FetchOutcome, SeriesPoint, Station
from net_utils import SESSION, HTTP_TIMEOUT, get_json

log = logging.getLogger("openaq")

# OpenAQ v3 parameter ids
PARAMETER_IDS: Dict[str, int] = {"pm10": 1, "pm25": 2, "no2": 7, "co": 8, "so2": 9, "o3": 10}

# ---------- response shapes ----------
class _Shape(BaseModel):
    model_config = ConfigDict(extra="ignore")

class ParameterRef(_Shape):
    id: int
    name: str
    units: Optional[str] = None
    displayName: Optional[str] = None

class SensorRef(_Shape):
    id: int
    parameter: ParameterRef

class Coordinates(_Shape):
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class LocationRecord(_Shape):
    id: int
    name: Optional[str] = None
    locality: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    sensors: List[SensorRef] = []

class LatestRecord(_Shape):
    value: float
    sensorsId: int

class MeasurementRecord(_Shape):
    model_config = ConfigDict(extra="allow")
    value: Optional[float] = None

class LocationsResponse(_Shape):
    results: List[LocationRecord]

class LatestResponse(_Shape):
    results: List[LatestRecord]

class MeasurementsResponse(_Shape):
    results: List[MeasurementRecord]

# ---------- helpers ----------
def _safe(v, *keys, default=None):
    cur = v
    for k in keys:
        if isinstance(cur, dict) and (k in cur):
            cur = cur[k]
        else:
            return default
    return cur

def _iso(t: datetime) -> str:
    return t.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

def _measurement_time(m: Dict[str, Any]) -> Optional[str]:
    return (_safe(m, "period", "datetimeFrom", "utc")
            or _safe(m, "datetimeFrom", "utc")
            or _safe(m, "datetime", "utc"))

def find_sensor(sensors: List[SensorRef], pollutant: str) -> Optional[SensorRef]:
    pid = PARAMETER_IDS.get(pollutant)
    return next((s for s in sensors
                 if (pid is not None and s.parameter.id == pid)
                 or s.parameter.name.lower().strip() == pollutant), None)

def is_us_city(city: str) -> bool:
    c = city.lower()
    return any(name in c for name in US_CITY_NAMES)


class OpenAQClient:
    def __init__(self, api_key: Optional[str] = None, base: Optional[str] = None, session=None,
                 timeout: float = HTTP_TIMEOUT, max_workers: Optional[int] = None,
                 locations_limit: Optional[int] = None, history_limit: Optional[int] = None,
                 history_days: Optional[int] = None):
        cfg = get_config()
        self.api_key = cfg["OPENAQ_API_KEY"] if api_key is None else api_key
        self.base = (base or cfg["OPENAQ_BASE"]).rstrip("/")
        self.session = session if session is not None else SESSION
        self.timeout = timeout
        self.max_workers = max_workers or cfg["OPENAQ_CONCURRENCY"]
        self.locations_limit = locations_limit or cfg["LOCATIONS_LIMIT"]
        self.history_limit = history_limit or cfg["HISTORY_LIMIT"]
        self.history_days = history_days or cfg["HISTORY_DAYS"]

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"X-API-Key": self.api_key} if self.api_key else {}
        return get_json(self.session, f"{self.base}/{path}", params=params, headers=headers, timeout=self.timeout)

    @staticmethod
    def _parse(model, js: Any, what: str):
        try:
            return model.model_validate(js)
        except ValidationError as e:
            raise MalformedResponse(f"{what}: unexpected response shape ({e.error_count()} errors)") from e

    # ---------- directory ----------
    def lookup_stations_by_city(self, city: str, pollutant: str) -> List[LocationRecord]:
        params: Dict[str, Any] = {"locality": city, "limit": self.locations_limit}
        pid = PARAMETER_IDS.get(pollutant)
        if pid is not None:
            params["parameters_id"] = pid
        # Locality names are ambiguous worldwide; pin known US cities to the US
        if is_us_city(city):
            params["iso"] = "US"
        try:
            js = self._get("locations", params)
        except NotFound as e:
            raise UpstreamUnavailable(f"locations lookup for {city!r} returned 404", status=404) from e
        return self._parse(LocationsResponse, js, "locations").results

    def lookup_latest_by_location(self, location_id: int) -> List[LatestRecord]:
        js = self._get(f"locations/{location_id}/latest")
        return self._parse(LatestResponse, js, f"locations/{location_id}/latest").results

    def _resolve_location(self, loc: LocationRecord, pollutant: str) -> FetchOutcome[Station]:
        coords = loc.coordinates or Coordinates()
        lat, lon = coords.latitude, coords.longitude
        if lat is None or lon is None:
            return FetchOutcome.skip("no coordinates")
        sensor = find_sensor(loc.sensors, pollutant)
        if sensor is None:
            return FetchOutcome.skip(f"no {pollutant} sensor")
        try:
            latest = self.lookup_latest_by_location(loc.id)
        except EnviroWatchError as e:
            return FetchOutcome.error(str(e))
        hit = next((m for m in latest if m.sensorsId == sensor.id), None)
        if hit is None or not math.isfinite(hit.value):
            return FetchOutcome.skip(f"no latest {pollutant} value")
        name = loc.name or loc.locality or f"Location {loc.id}"
        return FetchOutcome.ok(Station.from_reading(str(loc.id), name, lat, lon, pollutant, hit.value))

    def resolve_station_outcomes(self, city: str, pollutant: str = "pm25") -> List[Tuple[int, FetchOutcome[Station]]]:
        """Per-location outcomes in directory order. Raises if the directory query fails."""
        pollutant = pollutant.lower()
        if pollutant not in BREAKPOINTS:
            raise ValueError(f"No AQI breakpoints for pollutant {pollutant!r}")
        locs = self.lookup_stations_by_city(city, pollutant)
        log.info(f"[OpenAQ] {len(locs)} locations for {city!r} ({pollutant})")
        if not locs:
            return []
        outcomes: List[Optional[FetchOutcome[Station]]] = [None] * len(locs)
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(locs)))) as ex:
            futs = {ex.submit(self._resolve_location, loc, pollutant): i for i, loc in enumerate(locs)}
            for fut in as_completed(futs):
                outcomes[futs[fut]] = fut.result()
        return [(loc.id, out) for loc, out in zip(locs, outcomes)]

    def resolve_stations(self, city: str, pollutant: str = "pm25") -> List[Station]:
        stations: List[Station] = []
        for loc_id, out in self.resolve_station_outcomes(city, pollutant):
            if out.is_ok:
                stations.append(out.value)
            elif out.status == "error":
                log.warning(f"[OpenAQ] location {loc_id} dropped: {out.reason}")
            else:
                log.debug(f"[OpenAQ] location {loc_id} skipped: {out.reason}")
        log.info(f"[OpenAQ] resolved {len(stations)} stations for {city!r}")
        return stations

    # ---------- history ----------
    def lookup_sensor_for_station(self, station_id: str, pollutant: str) -> int:
        try:
            lid = int(station_id)
        except (TypeError, ValueError):
            raise NotFound(f"station id {station_id!r} is not an OpenAQ location id", kind="station")
        try:
            js = self._get(f"locations/{lid}")
        except NotFound:
            raise NotFound(f"location {lid} not found", kind="station")
        results = self._parse(LocationsResponse, js, f"locations/{lid}").results
        if not results:
            raise NotFound(f"location {lid} not found", kind="station")
        sensor = find_sensor(results[0].sensors, pollutant.lower())
        if sensor is None:
            raise NotFound(f"no {pollutant} sensor at location {lid}", kind="sensor")
        return sensor.id

    def lookup_measurements(self, sensor_id: int, date_from: datetime, date_to: datetime,
                            limit: Optional[int] = None) -> List[Dict[str, Any]]:
        js = self._get(f"sensors/{sensor_id}/measurements", {
            "datetime_from": _iso(date_from),
            "datetime_to": _iso(date_to),
            "limit": limit or self.history_limit,
        })
        parsed = self._parse(MeasurementsResponse, js, f"sensors/{sensor_id}/measurements")
        return [m.model_dump() for m in parsed.results]

    def fetch_history(self, station_id: str, pollutant: str = "pm25",
                      now: Optional[datetime] = None) -> List[SeriesPoint]:
        """Last `history_days` of readings for the station's sensor, ascending by time."""
        sensor_id = self.lookup_sensor_for_station(station_id, pollutant)
        end = now or datetime.now(timezone.utc)
        start = end - timedelta(days=self.history_days)
        raw = self.lookup_measurements(sensor_id, start, end)
        rows = [{"time": _measurement_time(m), "value": m.get("value")} for m in raw]
        rows = [r for r in rows if r["time"] is not None]
        if not rows:
            return []

        df = pd.DataFrame(rows)
        df["time"] = pd.to_datetime(df["time"], utc=True, errors="coerce")
        df["value"] = pd.to_numeric(df["value"], errors="coerce")
        df = df.dropna(subset=["time"])
        df = df[(df["time"] >= start) & (df["time"] <= end)]
        df = df.sort_values("time", kind="stable")
        log.debug(f"[OpenAQ] station {station_id} sensor {sensor_id}: {len(df)} points")
        return [SeriesPoint(t.to_pydatetime(), float(v)) for t, v in zip(df["time"], df["value"])]


_DEFAULT: Optional[OpenAQClient] = None

def default_client() -> OpenAQClient:
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = OpenAQClient()
    return _DEFAULT

def resolve_stations(city: str, pollutant: str = "pm25") -> List[Station]:
    return default_client().resolve_stations(city, pollutant)

def fetch_history(station_id: str, pollutant: str = "pm25") -> List[SeriesPoint]:
    return default_client().fetch_history(station_id, pollutant)
