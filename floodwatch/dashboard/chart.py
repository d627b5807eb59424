"""Chart series and history table from merged readings.

Nothing computed here is written back to the store.
"""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from floodwatch.shared.models import Reading

FIVE_MINUTES_MS = 5 * 60 * 1000
SIX_HOURS_MS = 6 * 60 * 60 * 1000


@dataclass
class ChartPoint:
    """One bucket on the chart's time axis."""
    timestamp: int
    label: str
    water_level: Optional[float] = None
    interpolated: bool = False


@dataclass
class HourlyGroup:
    """Table rows for one calendar date, keyed by hour of day."""
    date: str
    readings: Dict[int, Reading]


def _local(timestamp_ms: int, tz: Optional[tzinfo]) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz)


def build_chart_series(
    readings: Iterable[Reading],
    current_level: Optional[float],
    now_ms: int,
    bucket_ms: int = FIVE_MINUTES_MS,
    window_ms: int = SIX_HOURS_MS,
    tz: Optional[tzinfo] = None,
) -> List[ChartPoint]:
    """Bucket readings over the window ending at now.

    Each bucket takes the latest reading inside it. Buckets after the last
    one with data, up to now, are interpolated linearly from that reading
    towards ``current_level`` by elapsed time. Buckets after now stay empty.
    """
    count = window_ms // bucket_ms
    start = (now_ms - window_ms) // bucket_ms * bucket_ms

    latest: Dict[int, Reading] = {}
    for reading in readings:
        bucket = (reading.timestamp - start) // bucket_ms
        if 0 <= bucket < count:
            held = latest.get(bucket)
            if held is None or reading.timestamp > held.timestamp:
                latest[bucket] = reading

    points = []
    for i in range(count):
        timestamp = start + i * bucket_ms
        reading = latest.get(i)
        points.append(ChartPoint(
            timestamp=timestamp,
            label=_local(timestamp, tz).strftime("%H:%M"),
            water_level=reading.water_level if reading else None,
        ))

    if current_level is None or not latest:
        return points

    last = latest[max(latest)]
    span = now_ms - last.timestamp
    for point in points[max(latest) + 1:]:
        if point.timestamp > now_ms:
            break
        ratio = (point.timestamp - last.timestamp) / span if span > 0 else 0.0
        point.water_level = last.water_level + (current_level - last.water_level) * ratio
        point.interpolated = True

    return points


def _five_minute_key(timestamp_ms: int, tz: Optional[tzinfo]) -> Tuple[str, int, int]:
    moment = _local(timestamp_ms, tz)
    return moment.strftime("%Y-%m-%d"), moment.hour, moment.minute // 5 * 5


def five_minute_readings(readings: Iterable[Reading], tz: Optional[tzinfo] = None) -> List[Reading]:
    """Latest reading per 5-minute block, newest first."""
    groups: Dict[Tuple[str, int, int], Reading] = {}
    for reading in readings:
        key = _five_minute_key(reading.timestamp, tz)
        if key not in groups or reading.timestamp > groups[key].timestamp:
            groups[key] = reading
    return sorted(groups.values(), key=lambda r: r.timestamp, reverse=True)


def hourly_table(readings: Iterable[Reading], tz: Optional[tzinfo] = None) -> List[HourlyGroup]:
    """Latest reading per date and hour, dates newest first."""
    dates: Dict[str, Dict[int, Reading]] = {}
    for reading in five_minute_readings(readings, tz):
        moment = _local(reading.timestamp, tz)
        hours = dates.setdefault(moment.strftime("%Y-%m-%d"), {})
        held = hours.get(moment.hour)
        if held is None or reading.timestamp > held.timestamp:
            hours[moment.hour] = reading

    return [HourlyGroup(date=date, readings=dates[date]) for date in sorted(dates, reverse=True)]


def trend_direction(current: Reading, previous: Optional[Reading]) -> Optional[str]:
    """'up', 'down' or None compared with the previous reading."""
    if previous is None:
        return None
    if current.water_level > previous.water_level:
        return "up"
    if current.water_level < previous.water_level:
        return "down"
    return None


def chart_readings(minute_data: List[Reading], history: List[Reading]) -> List[Reading]:
    """Chart input: the per-minute samples when there are any, else the merged history."""
    return minute_data if minute_data else history
