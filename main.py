#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import argparse, time, logging

from config import get_config
from logging_utils import setup_logging
from refresh import Refresher
from state import DashboardState, summarize

# Ops
from prometheus_client import Counter, Gauge, start_http_server
from apscheduler.schedulers.background import BackgroundScheduler

log = logging.getLogger("orchestrator")

# Prometheus metrics
RUNS = Counter("envirowatch_refresh_runs_total", "Total refresh cycles")
FAILS = Counter("envirowatch_refresh_failures_total", "Refresh cycles that failed")
LAST_SUCCESS_TS = Gauge("envirowatch_last_success_unixtime", "Last successful refresh time")
LAST_RUN_TS = Gauge("envirowatch_last_run_unixtime", "Last refresh attempt time")
STATIONS = Gauge("envirowatch_stations", "Stations in the latest snapshot")
ANOMALIES = Gauge("envirowatch_anomalous_stations", "Stations flagged anomalous in the latest snapshot")
CIRCUIT_OPEN = Gauge("envirowatch_circuit_open", "Circuit breaker state (1=open)")

class CircuitBreaker:
    def __init__(self, fail_threshold: int, reset_minutes: int, clock=time.time):
        self.fail_threshold = fail_threshold
        self.reset_seconds = reset_minutes*60
        self.fail_count = 0
        self.opened_at = None
        self.clock = clock

    def record_success(self):
        self.fail_count = 0
        self.opened_at = None
        CIRCUIT_OPEN.set(0)

    def record_failure(self):
        self.fail_count += 1
        if self.fail_count >= self.fail_threshold and self.opened_at is None:
            self.opened_at = self.clock()
            CIRCUIT_OPEN.set(1)

    def allow(self) -> bool:
        if self.opened_at is None:
            return True
        if (self.clock() - self.opened_at) >= self.reset_seconds:
            # half-open
            self.fail_count = 0
            self.opened_at = None
            CIRCUIT_OPEN.set(0)
            return True
        return False

class Main:
    def __init__(self, city: str | None = None, refresher: Refresher | None = None, metrics: bool = True):
        cfg = get_config()
        self.cfg = cfg
        self.state = DashboardState(city=city or cfg["DEFAULT_CITY"])
        self.refresher = refresher or Refresher()
        self.circuit = CircuitBreaker(cfg["CIRCUIT_FAIL_THRESHOLD"], cfg["CIRCUIT_RESET_MINUTES"])

        if metrics:
            start_http_server(cfg["METRICS_PORT"])
            log.info(f"Prometheus metrics server started on :{cfg['METRICS_PORT']}")

    def run_once(self) -> bool:
        RUNS.inc(); LAST_RUN_TS.set(time.time())
        if not self.circuit.allow():
            log.warning("Circuit breaker open, skipping refresh.")
            return False

        result = self.state.apply(self.refresher)
        if result is None:
            FAILS.inc()
            self.circuit.record_failure()
            log.error(f"Refresh FAILED for {self.state.city!r}: {self.state.error}")
            return False

        stats = summarize(result.stations)
        STATIONS.set(stats["stations"])
        ANOMALIES.set(stats["anomalies"])
        self.circuit.record_success()
        LAST_SUCCESS_TS.set(time.time())
        log.info(f"Refresh SUCCESS {self.state.city!r}: {stats['stations']} stations, "
                 f"avg AQI {stats['avgAqi']:.0f}, {stats['anomalies']} anomalous")
        if result.partial:
            log.warning(f"Partial refresh: {len(result.partial.dropped)} sub-fetches dropped")
        return True

def _parse():
    ap = argparse.ArgumentParser(description="Refresh station readings and anomaly scores for a city.")
    ap.add_argument("--city", type=str, help="City name (default: DEFAULT_CITY)")
    ap.add_argument("--once", action="store_true", help="Run a single refresh and exit.")
    ap.add_argument("--interval", type=int, help="Minutes between refreshes (default: REFRESH_MINUTES)")
    return ap.parse_args()

# ---------- Entry ----------
if __name__ == "__main__":
    args = _parse()
    cfg = get_config()
    setup_logging(cfg["LOG_LEVEL"], cfg["LOG_DIR"])
    m = Main(city=args.city)

    # Immediate run
    m.run_once()

    # Scheduler
    if cfg["SCHED_ENABLE"] and not args.once:
        minutes = args.interval or cfg["REFRESH_MINUTES"]
        sched = BackgroundScheduler(timezone="UTC")
        # one cycle at a time; an overlapping tick is skipped, not queued
        sched.add_job(m.run_once, "interval", minutes=minutes, max_instances=1, coalesce=True)
        sched.start()
        log.info(f"Scheduler started (every {minutes} min).")
        try:
            while True: time.sleep(3600)
        except KeyboardInterrupt:
            sched.shutdown()
