"""floodwatch - water level telemetry from sensor node to dashboard."""

__version__ = "0.1.0"
