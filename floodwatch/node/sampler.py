"""Distance sampling with validity and timeout rules."""

import logging

from floodwatch.shared.errors import SensorFault
from floodwatch.shared.models import RawMeasurement
from .config import SamplerConfig
from .sources.base import EchoSource

logger = logging.getLogger(__name__)

# Speed of sound in cm/us, halved for the round trip
CM_PER_US = 0.0343 / 2


def echo_to_distance(duration_us: float) -> float:
    """Convert an echo round-trip duration to a one-way distance in cm."""
    return duration_us * CM_PER_US


class SensorSampler:
    """Turns echo pulses into RawMeasurements.

    A timeout, a zero-length echo, or a distance outside the configured
    physical range yields ``valid=False`` with the distance pinned to
    ``max_distance_cm``.
    """

    def __init__(self, source: EchoSource, config: SamplerConfig):
        self.source = source
        self.config = config

        self.samples = 0
        self.failures = 0
        self.consecutive_failures = 0

    def _invalid(self, reason: str) -> RawMeasurement:
        self.failures += 1
        self.consecutive_failures += 1
        # Log the first miss of a run, then every tenth
        if self.consecutive_failures == 1 or self.consecutive_failures % 10 == 0:
            logger.debug(
                f"No valid echo ({reason}), {self.consecutive_failures} in a row, "
                f"{self.failures}/{self.samples} total"
            )
        return RawMeasurement(distance_cm=self.config.max_distance_cm, valid=False)

    def sample(self) -> RawMeasurement:
        """Trigger one measurement."""
        self.samples += 1

        try:
            duration = self.source.ping(self.config.timeout_us)
        except SensorFault as e:
            return self._invalid(str(e) or "sensor fault")

        if duration is None:
            return self._invalid("timeout")
        if duration <= 0:
            return self._invalid("zero duration")

        distance = echo_to_distance(duration)
        if not self.config.min_distance_cm <= distance <= self.config.max_distance_cm:
            return self._invalid(f"out of range: {distance:.1f} cm")

        self.consecutive_failures = 0
        return RawMeasurement(distance_cm=round(distance, 2), valid=True)
