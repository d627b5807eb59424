"""Configuration for the sensor node."""

import os
from dataclasses import dataclass, field
from typing import Optional

from floodwatch.shared.config import load_yaml_config, resolve_config_path
from floodwatch.shared.protocol import SHAPE_NUMERIC, SHAPES


@dataclass
class SamplerConfig:
    """Echo timing and the sane physical range."""
    timeout_us: int = 30000
    min_distance_cm: float = 2.0
    max_distance_cm: float = 400.0

    @classmethod
    def from_dict(cls, data: dict) -> "SamplerConfig":
        return cls(
            timeout_us=data.get("timeout_us", 30000),
            min_distance_cm=data.get("min_distance_cm", 2.0),
            max_distance_cm=data.get("max_distance_cm", 400.0),
        )


@dataclass
class AlertThresholds:
    """Centimetre cut points and signalling cadence bounds.

    A distance equal to a threshold belongs to the lower tier.
    """
    safe_max_cm: float = 3.0
    warn_max_cm: float = 6.0
    extreme_cm: float = 12.0

    warning_slow_ms: int = 1000
    warning_fast_ms: int = 400
    critical_slow_ms: int = 300
    critical_fast_ms: int = 60

    # Level reported alongside the severity: "percent" or "cm"
    level_unit: str = "percent"
    max_level_cm: float = 8.0

    def __post_init__(self):
        if not self.safe_max_cm < self.warn_max_cm < self.extreme_cm:
            raise ValueError(
                f"Thresholds must be ordered: safe_max ({self.safe_max_cm}) < "
                f"warn_max ({self.warn_max_cm}) < extreme ({self.extreme_cm})"
            )
        if self.level_unit not in ("percent", "cm"):
            raise ValueError(f"Unknown level unit: {self.level_unit}")

    @classmethod
    def from_dict(cls, data: dict) -> "AlertThresholds":
        return cls(
            safe_max_cm=data.get("safe_max_cm", 3.0),
            warn_max_cm=data.get("warn_max_cm", 6.0),
            extreme_cm=data.get("extreme_cm", 12.0),
            warning_slow_ms=data.get("warning_slow_ms", 1000),
            warning_fast_ms=data.get("warning_fast_ms", 400),
            critical_slow_ms=data.get("critical_slow_ms", 300),
            critical_fast_ms=data.get("critical_fast_ms", 60),
            level_unit=data.get("level_unit", "percent"),
            max_level_cm=data.get("max_level_cm", 8.0),
        )


@dataclass
class NodeConfig:
    """Configuration for a sensor node."""
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)

    tick_interval_ms: int = 500
    send_interval_ms: int = 2000
    message_shape: str = SHAPE_NUMERIC

    # Output: serial port, or stdout when empty
    serial_port: str = ""
    baud_rate: int = 9600

    log_level: str = "INFO"

    def __post_init__(self):
        if self.message_shape not in SHAPES:
            raise ValueError(f"Unknown message shape: {self.message_shape}")

    @classmethod
    def from_dict(cls, data: dict) -> "NodeConfig":
        """Create config from dictionary."""
        return cls(
            sampler=SamplerConfig.from_dict(data.get("sampler", {})),
            thresholds=AlertThresholds.from_dict(data.get("thresholds", {})),
            tick_interval_ms=data.get("tick_interval_ms", 500),
            send_interval_ms=data.get("send_interval_ms", 2000),
            message_shape=data.get("message_shape", SHAPE_NUMERIC),
            serial_port=data.get("serial_port", ""),
            baud_rate=data.get("baud_rate", 9600),
            log_level=data.get("log_level", "INFO"),
        )


def load_config(config_path: Optional[str] = None) -> NodeConfig:
    """Load node configuration from YAML file or environment.

    Args:
        config_path: Path to YAML config file. If not provided,
                    looks for FLOODWATCH_NODE_CONFIG env var, then config/node.yaml,
                    then falls back to default config.

    Returns:
        NodeConfig instance.
    """
    path = resolve_config_path(config_path, "FLOODWATCH_NODE_CONFIG", "node.yaml")
    if path is not None:
        return NodeConfig.from_dict(load_yaml_config(path))

    config = NodeConfig()

    if port := os.environ.get("FLOODWATCH_NODE_SERIAL_PORT"):
        config.serial_port = port
    if log_level := os.environ.get("LOG_LEVEL"):
        config.log_level = log_level

    return config
