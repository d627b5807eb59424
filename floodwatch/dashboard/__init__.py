"""Dashboard client - reconciles live and historical readings."""

from .chart import ChartPoint, build_chart_series, chart_readings, hourly_table, trend_direction
from .client import CURRENT_READING_ID, DashboardClient, normalize_minute_data, normalize_record
from .debounce import Debouncer
from .reconciler import ReconcilerState, ReconcilerStatus, StreamReconciler, watch

__all__ = [
    "CURRENT_READING_ID",
    "ChartPoint",
    "DashboardClient",
    "Debouncer",
    "ReconcilerState",
    "ReconcilerStatus",
    "StreamReconciler",
    "build_chart_series",
    "chart_readings",
    "hourly_table",
    "normalize_minute_data",
    "normalize_record",
    "trend_direction",
    "watch",
]
