"""Store backend selection."""

import os
from dataclasses import dataclass, field

from floodwatch.shared.mqtt import MQTTConfig
from .base import CloudStore


@dataclass
class StoreConfig:
    """Which cloud store to use and how to reach it.

    Credentials are opaque: they are read from the environment and handed
    to the backend unparsed.
    """
    backend: str = "memory"  # memory, mqtt or rest
    base_url: str = ""
    auth_token: str = ""
    timeout: float = 10.0
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "StoreConfig":
        """Create config from dictionary."""
        return cls(
            backend=data.get("backend", "memory"),
            base_url=data.get("base_url", ""),
            auth_token=data.get("auth_token") or os.getenv("FLOODWATCH_STORE_TOKEN", ""),
            timeout=data.get("timeout", 10.0),
            mqtt=MQTTConfig.from_dict(data.get("mqtt", {})),
        )


def create_store(config: StoreConfig) -> CloudStore:
    """Instantiate the configured store backend."""
    if config.backend == "memory":
        from .memory import MemoryStore
        return MemoryStore()

    if config.backend == "mqtt":
        from .mqtt_store import MQTTStore
        return MQTTStore(config.mqtt, connect_timeout=config.timeout)

    if config.backend == "rest":
        from .rest_store import RestStore
        if not config.base_url:
            raise ValueError("The rest store backend needs base_url")
        return RestStore(config.base_url, auth_token=config.auth_token, timeout=config.timeout)

    raise ValueError(f"Unsupported store backend: {config.backend}")
