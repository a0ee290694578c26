"""
Tests for the PM2.5 → AQI conversion: band selection, interpolation and fallback row.
"""
import pytest

import aqi
from aqi import BANDS, PM25_BREAKPOINTS, pollutant_to_index, pm25_to_aqi


class TestBreakpointTable:
    def test_five_rows_in_band_order(self):
        assert [row[4] for row in PM25_BREAKPOINTS] == list(BANDS)

    def test_rows_ascend_without_overlap(self):
        for prev, cur in zip(PM25_BREAKPOINTS, PM25_BREAKPOINTS[1:]):
            assert prev[1] < cur[0]
            assert prev[3] < cur[2]


class TestPollutantToIndex:
    @pytest.mark.parametrize("conc,value,band", [
        (0.0, 0, "good"),
        (6.0, 25, "good"),
        (12.0, 50, "good"),
        (12.1, 51, "moderate"),
        (20.0, 68, "moderate"),
        (35.4, 100, "moderate"),
        (35.5, 101, "unhealthy"),
        (55.5, 151, "very-unhealthy"),
        (150.5, 201, "hazardous"),
        (500.4, 500, "hazardous"),
    ])
    def test_published_values(self, conc, value, band):
        assert pollutant_to_index(conc) == (value, band)

    def test_every_row_interior_maps_to_its_band(self):
        for lo, hi, aqi_lo, aqi_hi, band in PM25_BREAKPOINTS:
            for c in (lo, lo + (hi - lo) * 0.25, lo + (hi - lo) * 0.5, lo + (hi - lo) * 0.75, hi):
                r = pollutant_to_index(c)
                assert r.band == band
                assert aqi_lo <= r.value <= aqi_hi

    def test_above_top_extrapolates_from_last_row(self):
        r = pollutant_to_index(600.0)
        assert r.band == "hazardous"
        assert r.value == 585

    def test_between_rows_truncates_to_lower_row(self):
        assert pollutant_to_index(12.05).band in ("good", "moderate")
        assert pollutant_to_index(12.05) == (50, "good")
        assert pollutant_to_index(35.45) == (100, "moderate")
        assert pollutant_to_index(55.45) == (150, "unhealthy")
        assert pollutant_to_index(150.45) == (200, "very-unhealthy")

    def test_hundredths_truncate_not_round(self):
        assert pollutant_to_index(12.19) == (51, "moderate")
        assert pollutant_to_index(12.1) == (51, "moderate")

    def test_negative_does_not_raise(self):
        r = pollutant_to_index(-1.0)
        assert r.band in BANDS

    def test_shared_boundary_goes_to_lower_row(self, monkeypatch):
        table = [(0.0, 10.0, 0, 50, "good"), (10.0, 20.0, 51, 100, "moderate")]
        monkeypatch.setitem(aqi.BREAKPOINTS, "test", table)
        assert pollutant_to_index(10.0, "test") == (50, "good")

    def test_unknown_pollutant_raises(self):
        with pytest.raises(KeyError):
            pollutant_to_index(5.0, "xyz")

    def test_pm25_alias(self):
        assert pm25_to_aqi(12.0) == pollutant_to_index(12.0, "pm25")

    def test_band_is_always_known(self):
        for c in [x * 7.3 for x in range(0, 120)]:
            assert pollutant_to_index(c).band in BANDS
