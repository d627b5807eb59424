"""Water level and status derivation.

Two rules are canonical here:

* Legacy records carry only ``distance``: the gap in cm between the sensor
  and the water surface, over a fixed 15 cm span. Their level is
  ``100 - distance / 15 * 100`` clamped to 0..100.
* Records without a ``status`` get one from their level percentage:
  Critical at 90 and above, Warning at 60 and above, Safe otherwise.

Node-side classification uses centimetre thresholds instead; see
floodwatch.node.classifier.
"""

import math
from typing import Any, Optional

from .models import Severity

LEGACY_MAX_DISTANCE_CM = 15.0

LEVEL_WARNING_PERCENT = 60.0
LEVEL_CRITICAL_PERCENT = 90.0


def to_float(value: Any) -> Optional[float]:
    """Coerce a store or wire value to float, None if not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (ValueError, TypeError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def level_from_distance(
    distance_cm: float,
    max_distance_cm: float = LEGACY_MAX_DISTANCE_CM,
) -> float:
    """Level percentage for a legacy sensor-to-surface distance."""
    return clamp_percent(round(100 - (distance_cm / max_distance_cm * 100)))


def fill_percent(height_cm: float, max_height_cm: float) -> float:
    """Level percentage for a height measured against a full-scale height."""
    if max_height_cm <= 0:
        return 0.0
    return clamp_percent(round(height_cm / max_height_cm * 100))


def severity_from_level(level: Optional[float]) -> Severity:
    if level is None:
        return Severity.NO_OBJECT
    if level >= LEVEL_CRITICAL_PERCENT:
        return Severity.CRITICAL
    if level >= LEVEL_WARNING_PERCENT:
        return Severity.WARNING
    return Severity.SAFE


def status_from_level(level: Optional[float]) -> str:
    """Status text for a level percentage (see module docstring)."""
    return severity_from_level(level).value
