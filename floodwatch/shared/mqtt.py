"""MQTT configuration."""

from dataclasses import dataclass


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""
    broker: str = "localhost"
    port: int = 1883
    client_id: str = "floodwatch-client"
    keepalive: int = 60
    qos: int = 1
    topic_prefix: str = "floodwatch"
    username: str = ""
    password: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "MQTTConfig":
        """Create config from dictionary."""
        return cls(
            broker=data.get("broker", "localhost"),
            port=data.get("port", 1883),
            client_id=data.get("client_id", "floodwatch-client"),
            keepalive=data.get("keepalive", 60),
            qos=data.get("qos", 1),
            topic_prefix=data.get("topic_prefix", "floodwatch"),
            username=data.get("username", ""),
            password=data.get("password", ""),
        )
