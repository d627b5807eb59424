"""Base class for echo sources."""

from abc import ABC, abstractmethod
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class EchoSource(ABC):
    """Base class for anything that can fire a ranging pulse.

    Pin wiring and pulse timing belong to the concrete source; the sampler
    only sees echo durations.
    """

    @abstractmethod
    def ping(self, timeout_us: int) -> Optional[int]:
        """Trigger one measurement and return the echo duration in microseconds.

        Returns None, or raises SensorFault, when no echo arrived in time.
        """
        pass

    @abstractmethod
    def check_health(self) -> bool:
        """Basic health check - is the sensor responding at all?"""
        pass
