#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os, json, logging
from typing import Dict, Any, List
from dotenv import load_dotenv

log = logging.getLogger("config")

__CFG_CACHE: Dict[str, Any] | None = None

# Home-city regions. Stations outside the bbox are ignored when centering the map.
DEFAULT_CITY_REGIONS: List[Dict[str, Any]] = [
    {
        "name": "San Francisco",
        "aliases": ["san francisco", "sf"],
        "bbox": [-122.6, 37.6, -122.3, 37.9],  # W,S,E,N
        "iso": "US",
    },
]

# Directory queries for these names are restricted to iso=US
US_CITY_NAMES: List[str] = [
    "san francisco", "san jose", "los angeles", "new york", "chicago",
    "boston", "seattle", "portland", "miami", "houston", "phoenix",
    "philadelphia", "dallas", "austin", "denver", "atlanta", "detroit",
    "minneapolis", "washington",
]

def load_env_once():
    # Load .env only once to avoid noisy logs
    global __CFG_CACHE
    if __CFG_CACHE is None:
        load_dotenv()
        __CFG_CACHE = {}
    return True

def _env(name: str, default: str) -> str:
    return os.getenv(name, default).strip()

def _parse_center(raw: str) -> tuple[float, float]:
    lon, lat = [float(x.strip()) for x in raw.split(",")]
    return lon, lat

def _load_regions(raw: str) -> List[Dict[str, Any]]:
    if not raw:
        return DEFAULT_CITY_REGIONS
    try:
        regions = json.loads(raw)
    except ValueError as e:
        log.warning(f"CITY_REGIONS_JSON is not valid JSON ({e}); using default regions")
        return DEFAULT_CITY_REGIONS
    if not isinstance(regions, list):
        log.warning(f"CITY_REGIONS_JSON must be a JSON list, got {type(regions).__name__}; using default regions")
        return DEFAULT_CITY_REGIONS
    return regions

def get_config() -> Dict[str, Any]:
    load_env_once()
    # Read env with sensible defaults
    cfg = {
        "OPENAQ_API_KEY": _env("OPENAQ_API_KEY", ""),
        "OPENAQ_BASE": _env("OPENAQ_BASE", "https://api.openaq.org/v3").rstrip("/"),
        "WEATHER_BASE": _env("WEATHER_BASE", "https://api.open-meteo.com/v1/forecast"),
        "DEFAULT_CITY": _env("DEFAULT_CITY", "San Francisco"),
        "DEFAULT_CENTER": _parse_center(_env("DEFAULT_CENTER", "-122.4194,37.7749")),
        "PRIMARY_POLLUTANT": _env("PRIMARY_POLLUTANT", "pm25").lower(),
        "TOP_K": int(_env("TOP_K", "10")),
        "HISTORY_DAYS": int(_env("HISTORY_DAYS", "7")),
        "HISTORY_LIMIT": int(_env("HISTORY_LIMIT", "1000")),
        "LOCATIONS_LIMIT": int(_env("LOCATIONS_LIMIT", "50")),
        "OPENAQ_CONCURRENCY": int(_env("OPENAQ_CONCURRENCY", "24")),
        "HTTP_TIMEOUT": float(_env("HTTP_TIMEOUT", "30")),
        "HTTP_RETRIES": int(_env("HTTP_RETRIES", "0")),
        "USER_AGENT": _env("USER_AGENT", "EnviroWatch/1.0"),
        "LOG_LEVEL": _env("LOG_LEVEL", "INFO"),
        "LOG_DIR": _env("LOG_DIR", "./logs"),
        "METRICS_PORT": int(_env("METRICS_PORT", "9108")),
        "REFRESH_MINUTES": int(_env("REFRESH_MINUTES", "10")),
        "SCHED_ENABLE": _env("SCHED_ENABLE", "1") == "1",
        "CIRCUIT_FAIL_THRESHOLD": int(_env("CIRCUIT_FAIL_THRESHOLD", "3")),
        "CIRCUIT_RESET_MINUTES": int(_env("CIRCUIT_RESET_MINUTES", "15")),
        "ANOMALY_FLAG_SCORE": int(_env("ANOMALY_FLAG_SCORE", "75")),
        "CITY_REGIONS": _load_regions(_env("CITY_REGIONS_JSON", "")),
    }
    return cfg
