#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Domain records shared by the clients, the refresh pipeline and the API."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, NamedTuple, Optional, Tuple, TypeVar

from aqi import pollutant_to_index
from errors import Partial

T = TypeVar("T")


class Center(NamedTuple):
    lon: float
    lat: float


@dataclass(frozen=True)
class SeriesPoint:
    time: datetime
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time.isoformat(), "value": self.value}


@dataclass(frozen=True)
class Station:
    id: str
    name: str
    lat: float
    lon: float
    aqi: int
    band: str
    pollutants: Dict[str, float] = field(default_factory=dict)
    anomaly: Optional[int] = None

    @classmethod
    def from_reading(cls, id: str, name: str, lat: float, lon: float,
                     pollutant: str, concentration: float) -> "Station":
        # aqi and band always come from the same reading
        reading = pollutant_to_index(concentration, pollutant)
        return cls(
            id=str(id), name=name, lat=float(lat), lon=float(lon),
            aqi=reading.value, band=reading.band,
            pollutants={pollutant: float(concentration)},
        )

    def with_anomaly(self, score: Optional[int]) -> "Station":
        return dataclasses.replace(self, anomaly=score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "lat": self.lat,
            "lon": self.lon,
            "aqi": self.aqi,
            "band": self.band,
            "pollutants": dict(self.pollutants),
            "anomaly": self.anomaly,
        }


@dataclass(frozen=True)
class WeatherSnapshot:
    temp_c: float
    wind_kph: float

    def to_dict(self) -> Dict[str, Any]:
        return {"tempC": self.temp_c, "windKph": self.wind_kph}


@dataclass(frozen=True)
class FetchOutcome(Generic[T]):
    """Per-item enrichment result: ok (value set), skip (nothing to fetch) or error."""
    status: str
    value: Optional[T] = None
    reason: str = ""

    @classmethod
    def ok(cls, value: T) -> "FetchOutcome[T]":
        return cls("ok", value)

    @classmethod
    def skip(cls, reason: str) -> "FetchOutcome[T]":
        return cls("skip", None, reason)

    @classmethod
    def error(cls, reason: str) -> "FetchOutcome[T]":
        return cls("error", None, reason)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"


@dataclass(frozen=True)
class RefreshResult:
    city: str
    stations: Tuple[Station, ...]
    center: Center
    weather: Optional[WeatherSnapshot] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    partial: Partial = field(default_factory=Partial)

    def station(self, station_id: str) -> Optional[Station]:
        return next((s for s in self.stations if s.id == station_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "city": self.city,
            "stations": [s.to_dict() for s in self.stations],
            "center": [self.center.lon, self.center.lat],
            "weather": self.weather.to_dict() if self.weather else None,
            "lastUpdated": self.generated_at.isoformat(),
            "dropped": list(self.partial.dropped),
        }
