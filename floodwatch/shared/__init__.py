"""Shared utilities for floodwatch services."""

from .models import ClassifiedReading, RawMeasurement, Reading, Severity, TelemetryRecord
from .config import load_yaml_config, get_config_path
from .mqtt import MQTTConfig
from .logging import setup_logging
from .timestamps import TimestampCorrector, correct_timestamp

__all__ = [
    "ClassifiedReading",
    "RawMeasurement",
    "Reading",
    "Severity",
    "TelemetryRecord",
    "load_yaml_config",
    "get_config_path",
    "MQTTConfig",
    "setup_logging",
    "TimestampCorrector",
    "correct_timestamp",
]
