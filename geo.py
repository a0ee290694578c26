#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Map center from a station set.

Directory lookups by locality sometimes return stations far from the requested
city. For the configured home regions only stations inside the region's bbox
are averaged; every other city averages whatever came back.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from models import Center, Station


@dataclass(frozen=True)
class CityRegion:
    name: str
    aliases: Tuple[str, ...]
    bbox: Tuple[float, float, float, float]  # W,S,E,N
    iso: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CityRegion":
        W, S, E, N = [float(x) for x in d["bbox"]]
        aliases = tuple(str(a).lower().strip() for a in (d.get("aliases") or [d["name"]]))
        return cls(name=str(d["name"]), aliases=aliases, bbox=(W, S, E, N), iso=d.get("iso"))

    def matches(self, city: str) -> bool:
        c = (city or "").lower().strip()
        # Short aliases ("sf") must match exactly; longer ones as substrings
        return any((c == a) if len(a) <= 3 else (a in c) for a in self.aliases)

    def contains(self, lat: float, lon: float) -> bool:
        W, S, E, N = self.bbox
        return (S <= lat <= N) and (W <= lon <= E)


def load_regions(raw: Iterable[Dict[str, Any]]) -> List[CityRegion]:
    return [CityRegion.from_dict(d) for d in raw]


def match_region(city: str, regions: Sequence[CityRegion]) -> Optional[CityRegion]:
    return next((r for r in regions if r.matches(city)), None)


def _mean_center(stations: Sequence[Station]) -> Center:
    lons = np.fromiter((s.lon for s in stations), dtype=float)
    lats = np.fromiter((s.lat for s in stations), dtype=float)
    return Center(float(lons.mean()), float(lats.mean()))


def estimate_center(city: str, stations: Sequence[Station], previous_center: Center,
                    regions: Optional[Sequence[CityRegion]] = None) -> Center:
    if not stations:
        return Center(*previous_center)
    region = match_region(city, regions or [])
    if region is None:
        return _mean_center(stations)
    inside = [s for s in stations if region.contains(s.lat, s.lon)]
    if not inside:
        return Center(*previous_center)
    return _mean_center(inside)
