"""Sensor node: sampling, classification and line output."""

from .classifier import AlertClassifier
from .node import NodeState, SensorNode
from .sampler import SensorSampler


def main():
    """Entry point for a simulated sensor node."""
    from .config import load_config
    from .node import open_output, run_node
    from .sources import DummyEchoSource
    from floodwatch.shared.logging import setup_logging

    config = load_config()
    setup_logging(config.log_level)

    node = SensorNode(
        sampler=SensorSampler(DummyEchoSource(), config.sampler),
        classifier=AlertClassifier(config.thresholds),
        config=config,
    )

    output = open_output(config)
    try:
        run_node(node, output)
    except KeyboardInterrupt:
        pass
    finally:
        if config.serial_port:
            output.close()


__all__ = ["AlertClassifier", "NodeState", "SensorNode", "SensorSampler", "main"]
