import random
from typing import Optional
import logging

from .base import EchoSource

logger = logging.getLogger(__name__)

# Round trip, in microseconds per centimetre
US_PER_CM = 2 / 0.0343


class DummyEchoSource(EchoSource):
    def __init__(
        self,
        base_distance_cm: float = 4.0,
        variation_cm: float = 0.5,
        dropout_rate: float = 0.05,
        rng: Optional[random.Random] = None,
    ):
        """
        Simulated ultrasonic sensor for running a node without hardware.

        Distances follow a mean-reverting random walk around
        base_distance_cm; dropout_rate of the pings return no echo.
        """
        self.base_distance_cm = base_distance_cm
        self.variation_cm = variation_cm
        self.dropout_rate = dropout_rate
        self.rng = rng or random.Random()

        # Keep last value to avoid wild jumps
        self.last_distance_cm = base_distance_cm
        logger.info(f"Initialized DummyEchoSource around {base_distance_cm} cm")

    def _next_distance(self) -> float:
        """Generate a somewhat realistic varying distance"""
        change = self.rng.uniform(-self.variation_cm, self.variation_cm)
        new_value = self.last_distance_cm + change

        # Mean reversion
        new_value = new_value * 0.9 + self.base_distance_cm * 0.1

        self.last_distance_cm = max(0.0, new_value)
        return self.last_distance_cm

    def ping(self, timeout_us: int) -> Optional[int]:
        if self.rng.random() < self.dropout_rate:
            return None

        duration = int(self._next_distance() * US_PER_CM)
        if duration > timeout_us:
            return None
        return duration

    def check_health(self) -> bool:
        # Simulated sensor is always healthy
        return True
