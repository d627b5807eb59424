"""Tests for severity classification and signalling cadence."""

import pytest

from floodwatch.node.classifier import SIGNAL_CONTINUOUS, AlertClassifier
from floodwatch.node.config import AlertThresholds
from floodwatch.shared.models import RawMeasurement, Severity


@pytest.fixture
def classifier():
    return AlertClassifier(AlertThresholds())


class TestSeverity:
    """Step function over the centimetre thresholds."""

    @pytest.mark.parametrize("distance,expected", [
        (0.5, Severity.SAFE),
        (2.0, Severity.SAFE),
        (3.0, Severity.SAFE),
        (3.01, Severity.WARNING),
        (6.0, Severity.WARNING),
        (6.01, Severity.CRITICAL),
        (12.0, Severity.CRITICAL),
        (50.0, Severity.CRITICAL),
    ])
    def test_boundaries(self, classifier, distance, expected):
        """A value equal to a threshold belongs to the lower tier."""
        assert classifier.severity(distance) == expected

    def test_severity_never_decreases_with_distance(self, classifier):
        """Rank is monotonic in distance."""
        distances = [d / 4 for d in range(0, 80)]
        ranks = [classifier.severity(d).rank for d in distances]
        assert ranks == sorted(ranks)

    def test_thresholds_must_be_ordered(self):
        """Misordered thresholds are rejected at construction."""
        with pytest.raises(ValueError):
            AlertThresholds(safe_max_cm=6.0, warn_max_cm=3.0)
        with pytest.raises(ValueError):
            AlertThresholds(warn_max_cm=12.0, extreme_cm=12.0)


class TestSignalInterval:
    """Toggle period per tier."""

    def test_safe_is_silent(self, classifier):
        """No signal at or below safe_max."""
        assert classifier.signal_interval(3.0) is None

    def test_warning_range(self, classifier):
        """Warning slides from the slow to the fast warning interval."""
        assert classifier.signal_interval(4.5) == 700
        assert classifier.signal_interval(6.0) == 400

    def test_critical_interpolates(self, classifier):
        """9 cm sits halfway between warn_max and extreme."""
        assert classifier.signal_interval(9.0) == 180

    def test_extreme_is_continuous(self, classifier):
        """At or beyond the extreme cutoff the signal is held on."""
        assert classifier.signal_interval(12.0) == SIGNAL_CONTINUOUS
        assert classifier.signal_interval(30.0) == SIGNAL_CONTINUOUS

    def test_interval_decreases_as_distance_rises(self, classifier):
        """Within the alert tiers the interval never grows."""
        intervals = [classifier.signal_interval(d / 10) for d in range(31, 121)]
        assert all(interval is not None for interval in intervals)
        assert intervals == sorted(intervals, reverse=True)


class TestClassify:
    """Full classification of raw measurements."""

    def test_timeout_is_no_object(self, classifier):
        """An invalid measurement is NO_OBJECT with the signal off."""
        reading = classifier.classify(RawMeasurement(distance_cm=400.0, valid=False))
        assert reading.severity == Severity.NO_OBJECT
        assert reading.severity != Severity.SAFE
        assert reading.signal_interval_ms is None
        assert not reading.signal_on

    def test_safe_reading(self, classifier):
        """2.0 cm is SAFE with the signal off."""
        reading = classifier.classify(RawMeasurement(distance_cm=2.0, valid=True))
        assert reading.severity == Severity.SAFE
        assert reading.signal_interval_ms is None
        assert reading.level_value == 25

    def test_critical_reading(self, classifier):
        """9.0 cm is CRITICAL with an interpolated interval."""
        reading = classifier.classify(RawMeasurement(distance_cm=9.0, valid=True))
        assert reading.severity == Severity.CRITICAL
        assert reading.signal_interval_ms == 180
        assert reading.signal_on
        assert reading.level_value == 100

    def test_level_in_centimetres(self):
        """The cm level unit reports the distance itself."""
        classifier = AlertClassifier(AlertThresholds(level_unit="cm"))
        reading = classifier.classify(RawMeasurement(distance_cm=4.25, valid=True))
        assert reading.level_value == 4.25
