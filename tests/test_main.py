"""
Tests for the scheduled runner: circuit breaker and a single guarded run.
"""
from unittest.mock import MagicMock

from errors import UpstreamUnavailable
from main import CircuitBreaker, Main
from models import Center, RefreshResult, Station


class FakeClock:
    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


class TestCircuitBreaker:
    def test_opens_after_threshold_and_half_opens_after_reset(self):
        clock = FakeClock()
        cb = CircuitBreaker(fail_threshold=2, reset_minutes=1, clock=clock)
        cb.record_failure()
        assert cb.allow()
        cb.record_failure()
        assert not cb.allow()
        clock.t += 61
        assert cb.allow()
        assert cb.fail_count == 0

    def test_success_resets(self):
        cb = CircuitBreaker(fail_threshold=1, reset_minutes=5, clock=FakeClock())
        cb.record_failure()
        cb.record_success()
        assert cb.allow()


class TestMainRunOnce:
    def _result(self):
        s = Station(id="1", name="A", lat=37.3, lon=-121.9, aqi=120, band="unhealthy",
                    pollutants={"pm25": 43.0}, anomaly=90)
        return RefreshResult(city="San Jose", stations=(s,), center=Center(-121.9, 37.3))

    def test_success_updates_state(self):
        refresher = MagicMock()
        refresher.refresh.return_value = self._result()
        m = Main(city="San Jose", refresher=refresher, metrics=False)
        assert m.run_once()
        assert m.state.center == Center(-121.9, 37.3)
        assert m.state.error is None

    def test_failures_open_the_circuit(self):
        refresher = MagicMock()
        refresher.refresh.side_effect = UpstreamUnavailable("down", status=503)
        m = Main(city="San Jose", refresher=refresher, metrics=False)
        m.circuit = CircuitBreaker(fail_threshold=2, reset_minutes=10, clock=FakeClock())
        assert not m.run_once()
        assert not m.run_once()
        assert not m.run_once()
        # third run was skipped by the open circuit
        assert refresher.refresh.call_count == 2
