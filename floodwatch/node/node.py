"""Sensor node loop: sample, classify, signal, encode.

Everything happens synchronously inside one tick. Mutable device state
lives in NodeState and is passed in explicitly.
"""

import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Optional

import serial

from floodwatch.shared.models import ClassifiedReading, Severity
from floodwatch.shared.protocol import (
    SHAPE_LEGACY,
    SHAPE_STATUS,
    CurrentMessage,
    DecodedMessage,
    LegacyDistanceMessage,
    encode_message,
)
from .classifier import AlertClassifier
from .config import NodeConfig
from .sampler import SensorSampler

logger = logging.getLogger(__name__)


@dataclass
class SignalState:
    """Buzzer phase for the alarm."""
    on: bool = False
    last_toggle_ms: Optional[int] = None


@dataclass
class NodeState:
    """All mutable node state."""
    signal: SignalState = field(default_factory=SignalState)
    last_send_ms: Optional[int] = None
    last_reading: Optional[ClassifiedReading] = None
    lines_sent: int = 0


def update_signal(state: SignalState, reading: ClassifiedReading, now_ms: int) -> bool:
    """Advance the buzzer phase and return whether it should sound.

    Off when the interval is None, held on when it is 0, otherwise toggled
    each time the interval elapses.
    """
    interval = reading.signal_interval_ms

    if interval is None:
        state.on = False
        state.last_toggle_ms = None
    elif interval == 0:
        state.on = True
        state.last_toggle_ms = now_ms
    elif state.last_toggle_ms is None:
        state.on = True
        state.last_toggle_ms = now_ms
    elif now_ms - state.last_toggle_ms >= interval:
        state.on = not state.on
        state.last_toggle_ms = now_ms

    return state.on


def build_message(reading: ClassifiedReading, shape: str) -> DecodedMessage:
    """Build the outbound message for a reading in the configured shape."""
    has_value = reading.severity != Severity.NO_OBJECT

    if shape == SHAPE_LEGACY:
        return LegacyDistanceMessage(distance=reading.distance_cm if has_value else None)

    if shape == SHAPE_STATUS:
        return CurrentMessage(
            value=reading.distance_cm if has_value else None,
            status=reading.severity.value,
            with_unit=True,
        )

    return CurrentMessage(
        value=reading.level_value if has_value else None,
        secondary=reading.distance_cm if has_value else None,
    )


class SensorNode:
    """One node: a sampler, a classifier and the outbound line encoder."""

    def __init__(
        self,
        sampler: SensorSampler,
        classifier: AlertClassifier,
        config: NodeConfig,
    ):
        self.sampler = sampler
        self.classifier = classifier
        self.config = config

    def tick(self, state: NodeState, now_ms: int) -> Optional[str]:
        """Run one sampling tick.

        Returns:
            The encoded line when a send is due, otherwise None.
        """
        measurement = self.sampler.sample()
        reading = self.classifier.classify(measurement)

        previous = state.last_reading
        if previous is None or previous.severity != reading.severity:
            logger.info(f"Severity: {reading.severity.value} ({reading.distance_cm:.1f} cm)")
        state.last_reading = reading

        update_signal(state.signal, reading, now_ms)

        if state.last_send_ms is not None and now_ms - state.last_send_ms < self.config.send_interval_ms:
            return None

        state.last_send_ms = now_ms
        state.lines_sent += 1
        return encode_message(build_message(reading, self.config.message_shape))


def open_output(config: NodeConfig):
    """Open the node's output link: a serial port, or stdout."""
    if config.serial_port:
        logger.info(f"Writing lines to {config.serial_port} at {config.baud_rate} baud")
        return serial.Serial(config.serial_port, config.baud_rate, timeout=1)
    return sys.stdout


def run_node(node: SensorNode, output, max_ticks: Optional[int] = None) -> NodeState:
    """Run the node loop until interrupted (or for max_ticks ticks)."""
    if not node.sampler.source.check_health():
        logger.warning("Echo source failed its health check; readings may time out")

    state = NodeState()
    ticks = 0
    interval_s = node.config.tick_interval_ms / 1000.0

    while max_ticks is None or ticks < max_ticks:
        started = time.monotonic()
        line = node.tick(state, int(time.time() * 1000))
        if line is not None:
            try:
                if isinstance(output, serial.Serial):
                    output.write(line.encode("ascii"))
                else:
                    output.write(line)
                    output.flush()
            except (serial.SerialException, OSError) as e:
                logger.error(f"Failed to write line: {e}")
        ticks += 1

        # Keep the cadence; a slow tick just shortens the sleep
        elapsed = time.monotonic() - started
        if max_ticks is None or ticks < max_ticks:
            time.sleep(max(0.0, interval_s - elapsed))

    return state
