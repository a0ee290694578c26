#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FastAPI server for the station dashboard.

Endpoints (all JSON):
- GET /healthz
- GET /api/aqi/breakpoints
- GET /api/stations?city=San+Jose
- GET /api/history?stationId=2178&parameter=pm25
- GET /api/weather?lat=37.77&lon=-122.42
- GET /api/refresh?city=San+Jose&aqi_gt=100&anomalies=1

Run:
    uvicorn air_quality_api:app --host 0.0.0.0 --port 8080 --reload
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from aqi import PM25_BREAKPOINTS
from config import get_config
from errors import EnviroWatchError, MalformedResponse, NotFound, UpstreamUnavailable
from logging_utils import setup_logging
from models import WeatherSnapshot
from openaq_api import OpenAQClient, default_client
from refresh import Refresher
from state import filter_stations, summarize
from weather_api import fetch_current_weather

cfg = get_config()
DEFAULT_CITY = cfg["DEFAULT_CITY"]
PRIMARY_POLLUTANT = cfg["PRIMARY_POLLUTANT"]

log = logging.getLogger("api")

_REFRESHER: Optional[Refresher] = None


# ---------- dependencies (overridable in tests) ----------
def get_client() -> OpenAQClient:
    return default_client()


def get_weather_fn() -> Callable[[float, float], WeatherSnapshot]:
    return fetch_current_weather


def get_refresher() -> Refresher:
    global _REFRESHER
    if _REFRESHER is None:
        _REFRESHER = Refresher(client=default_client())
    return _REFRESHER


def _upstream_error(e: EnviroWatchError, what: str) -> HTTPException:
    if isinstance(e, UpstreamUnavailable):
        return HTTPException(status_code=500, detail={"error": f"{what} failed", "upstreamStatus": e.status})
    if isinstance(e, MalformedResponse):
        return HTTPException(status_code=502, detail={"error": f"{what} returned an unexpected response"})
    return HTTPException(status_code=500, detail={"error": f"{what} failed"})


# ---------- FastAPI app ----------
@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging(cfg["LOG_LEVEL"], cfg["LOG_DIR"])
    yield


app = FastAPI(title="EnviroWatch API", version="0.1.0", lifespan=lifespan, docs_url="/api/docs", openapi_url="/api/openapi.json")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/api/aqi/breakpoints")
def aqi_breakpoints():
    return {
        "pollutant": "pm25",
        "units": "µg/m³ (24-hour)",
        "breakpoints": [
            {"c_low": lo, "c_high": hi, "aqi_low": aqi_lo, "aqi_high": aqi_hi, "band": band}
            for (lo, hi, aqi_lo, aqi_hi, band) in PM25_BREAKPOINTS
        ],
    }


@app.get("/api/stations")
def stations(city: Optional[str] = None, client: OpenAQClient = Depends(get_client)):
    city = city or DEFAULT_CITY
    try:
        out = client.resolve_stations(city, PRIMARY_POLLUTANT)
    except EnviroWatchError as e:
        log.error(f"/api/stations failed for {city!r}: {e}")
        raise _upstream_error(e, "OpenAQ locations endpoint")
    return [s.to_dict() for s in out]


@app.get("/api/history")
def history(stationId: Optional[str] = None, parameter: str = "pm25",
            client: OpenAQClient = Depends(get_client)):
    if not stationId:
        raise HTTPException(status_code=400, detail={"error": "stationId required"})
    if not stationId.isdigit():
        raise HTTPException(status_code=400, detail={"error": "stationId must be numeric"})
    try:
        series = client.fetch_history(stationId, parameter)
    except NotFound as e:
        msg = "Location not found" if e.kind == "station" else f"No {parameter} sensor for this station"
        raise HTTPException(status_code=404, detail={"error": msg})
    except EnviroWatchError as e:
        log.error(f"/api/history failed for {stationId}: {e}")
        raise _upstream_error(e, "OpenAQ measurements")
    return [p.to_dict() for p in series]


@app.get("/api/weather")
def weather(lat: Optional[float] = None, lon: Optional[float] = None,
            weather_fn: Callable[[float, float], WeatherSnapshot] = Depends(get_weather_fn)):
    if lat is None or lon is None:
        raise HTTPException(status_code=400, detail={"error": "lat and lon are required"})
    try:
        return weather_fn(lat, lon).to_dict()
    except EnviroWatchError as e:
        log.warning(f"/api/weather failed for {lat},{lon}: {e}")
        raise _upstream_error(e, "Open-Meteo endpoint")


@app.get("/api/refresh")
def refresh(city: Optional[str] = None,
            aqi_gt: Optional[int] = Query(None, ge=0, le=500),
            anomalies: int = Query(0, ge=0, le=1),
            refresher: Refresher = Depends(get_refresher)):
    city = city or DEFAULT_CITY
    previous = refresher.current
    try:
        result = refresher.refresh(city, previous.center if previous else None)
    except EnviroWatchError as e:
        raise _upstream_error(e, "Station refresh")
    body = result.to_dict()
    shown = filter_stations(result.stations, aqi_gt, bool(anomalies))
    body["stations"] = [s.to_dict() for s in shown]
    body["stats"] = summarize(shown)
    return body


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("air_quality_api:app", host="0.0.0.0", port=8080, reload=True)
