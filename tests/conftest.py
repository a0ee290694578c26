"""
Pytest configuration and shared fixtures: an in-memory HTTP session and OpenAQ payload builders.
"""
import os
import sys
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

# Ensure project root is on path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

BASE = "https://api.openaq.test/v3"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Routes GETs by URL path (relative to BASE). A route is a payload, a FakeResponse,
    an exception to raise, or a callable(params) returning one of those."""

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def get(self, url, params=None, headers=None, timeout=None):
        path = url[len(BASE) + 1:] if url.startswith(BASE) else url
        with self._lock:
            self.calls.append({"path": path, "params": dict(params or {}), "headers": dict(headers or {})})
        if path not in self.routes:
            return FakeResponse(404, {"detail": "not found"})
        route = self.routes[path]
        if callable(route) and not isinstance(route, FakeResponse):
            route = route(params or {})
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(200, route)

    def paths(self) -> List[str]:
        return [c["path"] for c in self.calls]


class InFlight:
    """Counts overlapping calls. `wrap(payload)` gives a route that holds each call briefly."""

    def __init__(self, hold: float = 0.1):
        self.hold = hold
        self.current = 0
        self.peak = 0
        self._lock = threading.Lock()

    def call(self, fn: Callable[[], Any]) -> Any:
        with self._lock:
            self.current += 1
            self.peak = max(self.peak, self.current)
        try:
            time.sleep(self.hold)
            return fn()
        finally:
            with self._lock:
                self.current -= 1

    def wrap(self, payload: Any) -> Callable[[Dict[str, Any]], Any]:
        return lambda params: self.call(lambda: payload)


def location(lid: int, lat: Optional[float] = 37.77, lon: Optional[float] = -122.42,
             name: Optional[str] = None, sensors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    if sensors is None:
        sensors = [{"id": lid * 10, "parameter": {"id": 2, "name": "pm25", "units": "µg/m³", "displayName": "PM2.5"}}]
    return {
        "id": lid,
        "name": name if name is not None else f"Station {lid}",
        "locality": "San Jose",
        "coordinates": {"latitude": lat, "longitude": lon},
        "sensors": sensors,
    }


def latest(sensor_id: int, value: float) -> Dict[str, Any]:
    return {"results": [{"value": value, "sensorsId": sensor_id,
                         "coordinates": {"latitude": 37.0, "longitude": -122.0}}]}


def measurements(values: List[float], start: datetime = NOW - timedelta(hours=48),
                 shuffle: bool = False) -> Dict[str, Any]:
    rows = [
        {"value": v, "period": {"datetimeFrom": {"utc": (start + timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M:%SZ")}}}
        for i, v in enumerate(values)
    ]
    if shuffle:
        rows = rows[1::2] + rows[0::2]
    return {"results": rows}


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_client(fake_session) -> Callable[..., Any]:
    from openaq_api import OpenAQClient

    def _make(**kw):
        kw.setdefault("api_key", "test-key")
        kw.setdefault("base", BASE)
        kw.setdefault("session", fake_session)
        kw.setdefault("max_workers", 4)
        return OpenAQClient(**kw)
    return _make


@pytest.fixture
def city_routes() -> Callable[[int], Dict[str, Any]]:
    """Directory + latest routes for n stations with ids 1..n and pm25 = 10*i."""
    def _routes(n: int, lat: float = 37.3, lon: float = -121.9) -> Dict[str, Any]:
        routes: Dict[str, Any] = {"locations": {"results": [location(i, lat, lon) for i in range(1, n + 1)]}}
        for i in range(1, n + 1):
            routes[f"locations/{i}/latest"] = latest(i * 10, 10.0 * i)
            routes[f"locations/{i}"] = {"results": [location(i, lat, lon)]}
        return routes
    return _routes
