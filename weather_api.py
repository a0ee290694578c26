#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Open-Meteo current conditions for the map center.
"""

import argparse, json, logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from config import get_config
from errors import MalformedResponse
from models import WeatherSnapshot
from net_utils import SESSION, HTTP_TIMEOUT, get_json

log = logging.getLogger("weather")

class _CurrentWeather(BaseModel):
    model_config = ConfigDict(extra="ignore")
    temperature: float
    windspeed: float  # km/h by default

class _ForecastResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")
    current_weather: _CurrentWeather

def fetch_current_weather(lat: float, lon: float, session=None, base: Optional[str] = None,
                          timeout: float = HTTP_TIMEOUT) -> WeatherSnapshot:
    base = base or get_config()["WEATHER_BASE"]
    params = {"latitude": lat, "longitude": lon, "current_weather": "true"}
    js = get_json(session if session is not None else SESSION, base, params=params, timeout=timeout)
    try:
        cw = _ForecastResponse.model_validate(js).current_weather
    except ValidationError as e:
        raise MalformedResponse(f"Open-Meteo: unexpected response shape ({e.error_count()} errors)") from e
    log.debug(f"[Weather] {lat:.4f},{lon:.4f}: {cw.temperature}°C wind {cw.windspeed} km/h")
    return WeatherSnapshot(temp_c=cw.temperature, wind_kph=cw.windspeed)

# ------------- CLI -------------
def _parse():
    ap = argparse.ArgumentParser(description="Print Open-Meteo current weather as JSON.")
    ap.add_argument("--lat", type=float, required=True, help="Latitude")
    ap.add_argument("--lon", type=float, required=True, help="Longitude")
    return ap.parse_args()

def main():
    args = _parse()
    print(json.dumps(fetch_current_weather(args.lat, args.lon).to_dict()))

if __name__ == "__main__":
    main()
