"""Configuration for the gateway relay."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from floodwatch.shared.config import load_yaml_config, resolve_config_path
from floodwatch.shared.levels import LEGACY_MAX_DISTANCE_CM
from floodwatch.store.config import StoreConfig


@dataclass
class LinkConfig:
    """Bounded retry settings shared by both links."""
    boot_attempts: int = 30
    reconnect_attempts: int = 5
    retry_delay: float = 1.0  # seconds between attempts
    health_interval: float = 15.0  # seconds between checks while connected

    @classmethod
    def from_dict(cls, data: dict) -> "LinkConfig":
        return cls(
            boot_attempts=data.get("boot_attempts", 30),
            reconnect_attempts=data.get("reconnect_attempts", 5),
            retry_delay=data.get("retry_delay", 1.0),
            health_interval=data.get("health_interval", 15.0),
        )


@dataclass
class NetworkConfig:
    """How the gateway decides its network link is up."""
    ping_host: str = "8.8.8.8"
    ping_timeout: float = 2.0
    # Run before each connect attempt, e.g. ["sudo", "wpa_cli", "-i", "wlan0", "reassociate"]
    reconnect_command: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkConfig":
        return cls(
            ping_host=data.get("ping_host", "8.8.8.8"),
            ping_timeout=data.get("ping_timeout", 2.0),
            reconnect_command=list(data.get("reconnect_command", [])),
        )


@dataclass
class GatewayConfig:
    """Configuration for the gateway relay."""
    device_id: str = "unknown"

    # Physical link from the node; stdin when serial_port is empty
    serial_port: str = ""
    baud_rate: int = 9600
    read_timeout: float = 1.0

    # Full-scale height for WATER:<n>cm values, legacy sensor span
    level_max_cm: float = 8.0
    legacy_max_distance_cm: float = LEGACY_MAX_DISTANCE_CM

    link: LinkConfig = field(default_factory=LinkConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    # Also keep one sample per minute under minuteByMinuteData
    record_minute_data: bool = True
    diagnostics_capacity: int = 50
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict) -> "GatewayConfig":
        """Create config from dictionary."""
        return cls(
            device_id=data.get("device_id", "unknown"),
            serial_port=data.get("serial_port", ""),
            baud_rate=data.get("baud_rate", 9600),
            read_timeout=data.get("read_timeout", 1.0),
            level_max_cm=data.get("level_max_cm", 8.0),
            legacy_max_distance_cm=data.get("legacy_max_distance_cm", LEGACY_MAX_DISTANCE_CM),
            link=LinkConfig.from_dict(data.get("link", {})),
            network=NetworkConfig.from_dict(data.get("network", {})),
            store=StoreConfig.from_dict(data.get("store", {})),
            record_minute_data=data.get("record_minute_data", True),
            diagnostics_capacity=data.get("diagnostics_capacity", 50),
            log_level=data.get("log_level", "INFO"),
        )


def load_config(config_path: Optional[str] = None) -> GatewayConfig:
    """Load configuration from YAML file or environment.

    Args:
        config_path: Path to YAML config file. If not provided,
                    looks for FLOODWATCH_GATEWAY_CONFIG env var, then config/gateway.yaml,
                    then falls back to default config.

    Returns:
        GatewayConfig instance.
    """
    load_dotenv()

    path = resolve_config_path(config_path, "FLOODWATCH_GATEWAY_CONFIG", "gateway.yaml")
    if path is not None:
        return GatewayConfig.from_dict(load_yaml_config(path, load_env=False))

    # Environment variable overrides
    config = GatewayConfig()
    config.store.auth_token = os.environ.get("FLOODWATCH_STORE_TOKEN", "")

    if device_id := os.environ.get("FLOODWATCH_DEVICE_ID"):
        config.device_id = device_id
    if port := os.environ.get("FLOODWATCH_SERIAL_PORT"):
        config.serial_port = port
    if store_url := os.environ.get("FLOODWATCH_STORE_URL"):
        config.store.backend = "rest"
        config.store.base_url = store_url
    if mqtt_broker := os.environ.get("MQTT_BROKER"):
        config.store.backend = "mqtt"
        config.store.mqtt.broker = mqtt_broker
    if log_level := os.environ.get("LOG_LEVEL"):
        config.log_level = log_level

    return config
