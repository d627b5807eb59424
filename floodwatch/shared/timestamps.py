"""Timestamp correction for unreliable device clocks.

Before its time sync completes, a node may report seconds since boot
instead of wall-clock time. Values are classified in order:

1. above the 2020-01-01 millisecond epoch: already milliseconds, kept;
2. between the 2020-01-01 second epoch and 2e9: seconds, scaled to ms;
3. anything else: replaced with the receiver's wall clock.
"""

import logging
import time
from typing import Any, Callable, Optional, Tuple

from .levels import to_float

logger = logging.getLogger(__name__)

YEAR_2020_MS = 1577836800000
YEAR_2020_S = 1577836800
SECONDS_SATURATION = 2000000000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def plausible_ms(raw: Any) -> Optional[int]:
    """Return raw as epoch milliseconds, or None if it is not a usable clock value."""
    value = to_float(raw)
    if value is None:
        return None
    if value > YEAR_2020_MS:
        return int(value)
    if YEAR_2020_S < value < SECONDS_SATURATION:
        return int(value * 1000)
    return None


def correct_timestamp(raw: Any, now: Optional[int] = None) -> int:
    """Normalize a device clock value into epoch milliseconds.

    Args:
        raw: Clock value from the device (number or numeric string).
        now: Receiver wall clock in ms; defaults to the current time.

    Returns:
        A plausible epoch-millisecond timestamp.
    """
    value = plausible_ms(raw)
    if value is not None:
        return value

    logger.debug(f"Using receiver time instead of implausible timestamp: {raw!r}")
    return now if now is not None else now_ms()


class TimestampCorrector:
    """Applies correct_timestamp with an injectable receiver clock."""

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self.clock = clock or now_ms

    def correct(self, raw: Any) -> int:
        return correct_timestamp(raw, now=self.clock())

    def resolve(self, raw: Any) -> Tuple[int, bool]:
        """Like correct(), also reporting whether the receiver clock was substituted."""
        value = plausible_ms(raw)
        if value is not None:
            return value, False
        return correct_timestamp(raw, now=self.clock()), True

    __call__ = correct
