"""Severity classification and signalling cadence.

Severity rises with distance across two centimetre cut points:

    d <= safe_max            Safe       signal off
    safe_max < d <= warn_max Warning    interval slides warning_slow -> warning_fast
    warn_max < d < extreme   Critical   interval slides critical_slow -> critical_fast
    d >= extreme             Critical   continuous (interval 0)

There is no hysteresis, so a reading sitting on a cut point flickers
between tiers.
"""

import logging
from typing import Optional

from floodwatch.shared.levels import fill_percent
from floodwatch.shared.models import ClassifiedReading, RawMeasurement, Severity
from .config import AlertThresholds

logger = logging.getLogger(__name__)

SIGNAL_CONTINUOUS = 0


def _interpolate(value: float, start: float, end: float, at_start: float, at_end: float) -> float:
    if end == start:
        return at_end
    ratio = (value - start) / (end - start)
    ratio = max(0.0, min(1.0, ratio))
    return at_start + (at_end - at_start) * ratio


class AlertClassifier:
    """Maps raw measurements to ClassifiedReadings."""

    def __init__(self, thresholds: AlertThresholds):
        self.thresholds = thresholds

    def severity(self, distance_cm: float) -> Severity:
        t = self.thresholds
        if distance_cm <= t.safe_max_cm:
            return Severity.SAFE
        if distance_cm <= t.warn_max_cm:
            return Severity.WARNING
        return Severity.CRITICAL

    def signal_interval(self, distance_cm: float) -> Optional[int]:
        """Toggle period for the alarm, None when silent."""
        t = self.thresholds
        severity = self.severity(distance_cm)

        if severity == Severity.SAFE:
            return None
        if severity == Severity.WARNING:
            return int(round(_interpolate(
                distance_cm, t.safe_max_cm, t.warn_max_cm,
                t.warning_slow_ms, t.warning_fast_ms,
            )))
        if distance_cm >= t.extreme_cm:
            return SIGNAL_CONTINUOUS
        return int(round(_interpolate(
            distance_cm, t.warn_max_cm, t.extreme_cm,
            t.critical_slow_ms, t.critical_fast_ms,
        )))

    def level_value(self, distance_cm: float) -> float:
        t = self.thresholds
        if t.level_unit == "cm":
            return distance_cm
        return fill_percent(distance_cm, t.max_level_cm)

    def classify(self, measurement: RawMeasurement) -> ClassifiedReading:
        if not measurement.valid:
            return ClassifiedReading(
                distance_cm=measurement.distance_cm,
                level_value=0.0,
                severity=Severity.NO_OBJECT,
                signal_interval_ms=None,
            )

        distance = measurement.distance_cm
        return ClassifiedReading(
            distance_cm=distance,
            level_value=self.level_value(distance),
            severity=self.severity(distance),
            signal_interval_ms=self.signal_interval(distance),
        )
