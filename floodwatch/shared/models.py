"""Core data models for water level readings."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Severity(Enum):
    """Alert tier derived from a measurement.

    NO_OBJECT is reported when the sensor produced no usable echo; it is
    deliberately distinct from SAFE.
    """
    NO_OBJECT = "NoObject"
    SAFE = "Safe"
    WARNING = "Warning"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.NO_OBJECT: -1,
    Severity.SAFE: 0,
    Severity.WARNING: 1,
    Severity.CRITICAL: 2,
}


@dataclass(frozen=True)
class RawMeasurement:
    """One sampling tick from the distance sensor."""
    distance_cm: float
    valid: bool


@dataclass(frozen=True)
class ClassifiedReading:
    """A measurement mapped to a severity and a signalling cadence.

    signal_interval_ms is None when the signal is off, 0 when it is
    continuous, and otherwise the toggle period in milliseconds.
    """
    distance_cm: float
    level_value: float
    severity: Severity
    signal_interval_ms: Optional[int]

    @property
    def signal_on(self) -> bool:
        return self.signal_interval_ms is not None


@dataclass
class TelemetryRecord:
    """A reading as persisted in the cloud store."""
    water_level: float
    status: str
    device_id: str
    timestamp: int
    distance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the store's JSON shape."""
        data: Dict[str, Any] = {
            "waterLevel": self.water_level,
            "status": self.status,
            "deviceId": self.device_id,
            "timestamp": self.timestamp,
        }
        if self.distance is not None:
            data["distance"] = self.distance
        return data


@dataclass
class Reading:
    """A normalized record as seen by the dashboard client.

    timestamp is always a corrected epoch-millisecond value;
    timestamp_substituted is set when the stored clock value was unusable
    and the receiver clock stands in for it.
    """
    id: str
    water_level: float
    timestamp: int
    device_id: str = "unknown"
    status: str = ""
    distance: Optional[float] = None
    timestamp_substituted: bool = False
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
