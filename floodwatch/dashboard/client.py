"""Client-side access to the telemetry store.

Raw store records are normalized into Reading objects here, so the
reconciler and chart code only ever see corrected timestamps and numeric
levels.
"""

import logging
from typing import Any, Callable, List, Optional

from floodwatch.shared.levels import level_from_distance, status_from_level, to_float
from floodwatch.shared.models import Reading
from floodwatch.shared.timestamps import TimestampCorrector
from floodwatch.store.base import (
    CURRENT_STATE_PATH,
    HISTORY_PATH,
    MINUTE_DATA_PATH,
    CloudStore,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

CURRENT_READING_ID = "current-reading"

_KNOWN_FIELDS = {"waterLevel", "distance", "status", "deviceId", "timestamp"}


def normalize_record(
    raw: Any,
    record_id: str,
    corrector: Optional[TimestampCorrector] = None,
) -> Optional[Reading]:
    """Normalize one stored record.

    Legacy records without ``waterLevel`` get it from ``distance``. Records
    whose level is still not a number are dropped (None).
    """
    if not isinstance(raw, dict):
        return None

    corrector = corrector or TimestampCorrector()

    distance = to_float(raw.get("distance"))
    level = to_float(raw.get("waterLevel"))
    if level is None and distance is not None:
        level = level_from_distance(distance)
    if level is None:
        logger.debug(f"Dropping record {record_id}: no usable level")
        return None

    timestamp, substituted = corrector.resolve(raw.get("timestamp"))
    return Reading(
        id=str(record_id),
        water_level=level,
        timestamp=timestamp,
        timestamp_substituted=substituted,
        device_id=str(raw.get("deviceId") or "unknown"),
        status=str(raw.get("status") or status_from_level(level)),
        distance=distance,
        extra={k: v for k, v in raw.items() if k not in _KNOWN_FIELDS},
    )


def normalize_history(raw: Any, corrector: Optional[TimestampCorrector] = None) -> List[Reading]:
    """Normalize a history snapshot keyed by record id."""
    if not isinstance(raw, dict):
        return []
    readings = []
    for record_id, record in raw.items():
        reading = normalize_record(record, record_id, corrector)
        if reading is not None:
            readings.append(reading)
    return readings


def normalize_minute_data(raw: Any, corrector: Optional[TimestampCorrector] = None) -> List[Reading]:
    """Normalize a minuteByMinuteData snapshot, newest first.

    Keys are calendar minutes, so there is at most one reading per minute.
    """
    readings = normalize_history(raw, corrector)
    readings.sort(key=lambda r: r.timestamp, reverse=True)
    return readings

class DashboardClient:
    """Subscription API over a CloudStore."""

    def __init__(self, store: CloudStore, corrector: Optional[TimestampCorrector] = None):
        self.store = store
        self.corrector = corrector or TimestampCorrector()

    def subscribe_current(self, callback: Callable[[Optional[Reading]], None]) -> Unsubscribe:
        """Deliver the current reading (or None for no data) on every change."""

        def on_value(value):
            callback(normalize_record(value, CURRENT_READING_ID, self.corrector))

        return self.store.subscribe(CURRENT_STATE_PATH, on_value)

    def subscribe_history(self, callback: Callable[[List[Reading]], None]) -> Unsubscribe:
        """Deliver the full normalized history set on every change."""

        def on_value(value):
            callback(normalize_history(value, self.corrector))

        return self.store.subscribe(HISTORY_PATH, on_value)

    def subscribe_minute_data(self, callback: Callable[[List[Reading]], None]) -> Unsubscribe:
        """Deliver the per-minute chart samples, newest first, on every change."""

        def on_value(value):
            callback(normalize_minute_data(value, self.corrector))

        return self.store.subscribe(MINUTE_DATA_PATH, on_value)

    async def fetch_current_once(self) -> Optional[Reading]:
        try:
            value = await self.store.read(CURRENT_STATE_PATH)
        except Exception as e:
            logger.error(f"Error fetching current state: {e}")
            return None
        return normalize_record(value, CURRENT_READING_ID, self.corrector)
