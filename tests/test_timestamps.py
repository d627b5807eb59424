"""Tests for timestamp correction."""

import pytest

from floodwatch.shared.timestamps import (
    SECONDS_SATURATION,
    YEAR_2020_MS,
    YEAR_2020_S,
    TimestampCorrector,
    correct_timestamp,
)

from tests.conftest import NOW_MS, FakeClock


class TestCorrectTimestamp:
    """Three-way classification of device clock values."""

    def test_milliseconds_pass_through(self):
        assert correct_timestamp(1700000123456, now=NOW_MS) == 1700000123456

    def test_seconds_are_scaled(self):
        assert correct_timestamp(1700000000, now=NOW_MS) == 1700000000000

    def test_uptime_uses_receiver_clock(self):
        """A clock of 1000 (seconds since boot) is replaced by the receiver's time."""
        assert correct_timestamp(1000, now=NOW_MS) == NOW_MS

    @pytest.mark.parametrize("raw", [None, "", "soon", True, float("nan"), -5])
    def test_unusable_values(self, raw):
        assert correct_timestamp(raw, now=NOW_MS) == NOW_MS

    def test_numeric_strings(self):
        assert correct_timestamp("1700000000", now=NOW_MS) == 1700000000000
        assert correct_timestamp(" 1700000000000 ", now=NOW_MS) == 1700000000000

    @pytest.mark.parametrize("raw", [
        YEAR_2020_S,
        SECONDS_SATURATION,
        YEAR_2020_MS,
    ])
    def test_boundaries_are_exclusive(self, raw):
        """Exact cut points fall through to the receiver clock."""
        assert correct_timestamp(raw, now=NOW_MS) == NOW_MS

    @pytest.mark.parametrize("raw", [0, 1000, 1700000000, 1700000000000, "1600000000", None])
    def test_idempotent(self, raw):
        """correct(correct(t)) == correct(t)."""
        once = correct_timestamp(raw, now=NOW_MS)
        assert correct_timestamp(once, now=NOW_MS) == once


class TestTimestampCorrector:
    def test_uses_injected_clock(self):
        clock = FakeClock(NOW_MS)
        corrector = TimestampCorrector(clock)
        assert corrector.correct(1000) == NOW_MS
        clock.advance(500)
        assert corrector(1000) == NOW_MS + 500

    def test_resolve_reports_substitution(self):
        corrector = TimestampCorrector(FakeClock(NOW_MS))
        assert corrector.resolve(1700000000) == (1700000000000, False)
        assert corrector.resolve(1000) == (NOW_MS, True)
        assert corrector.resolve("soon") == (NOW_MS, True)
