#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from config import get_config
from errors import UpstreamUnavailable, NotFound, MalformedResponse

def make_session(retries: int = 0, user_agent: str = "EnviroWatch/1.0"):
    s = requests.Session()
    s.headers.update({
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "User-Agent": user_agent,
    })
    # Upstream failures are retried by the caller; keep this at 0 unless tuning for a flaky provider
    retry = Retry(
        total=retries,
        backoff_factor=0.5,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=100, pool_maxsize=100)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s

_cfg = get_config()
SESSION = make_session(_cfg["HTTP_RETRIES"], _cfg["USER_AGENT"])
HTTP_TIMEOUT = float(_cfg.get("HTTP_TIMEOUT", 30))

def get_json(session, url: str, params: Optional[Dict[str, Any]] = None,
             headers: Optional[Dict[str, str]] = None, timeout: float = HTTP_TIMEOUT) -> Any:
    """GET a JSON document, mapping failures onto the pipeline's error kinds."""
    try:
        r = session.get(url, params=params or {}, headers=headers or {}, timeout=timeout)
    except requests.RequestException as e:
        raise UpstreamUnavailable(f"GET {url} failed: {e}") from e
    if r.status_code == 404:
        raise NotFound(f"GET {url} returned 404", kind="location")
    if not (200 <= r.status_code < 300):
        raise UpstreamUnavailable(f"GET {url} returned {r.status_code}", status=r.status_code, body=r.text)
    try:
        return r.json()
    except ValueError as e:
        raise MalformedResponse(f"GET {url} returned a non-JSON body") from e
