"""Line protocol between the sensor node and the gateway.

One ASCII line per reading, colon separated, first field a tag:

    WATER:<value>:<suffix>        suffix is a secondary number or status text
    WATER:<value>cm:<status>      value carries a centimetre unit
    Distance: <value> cm          legacy firmware (a :<status> suffix is ignored)

A value of ``--`` (or anything non-numeric) means no measurement. Lines are
decoded into a tagged message immediately; nothing downstream looks at the
raw string.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .errors import ProtocolDecodeError
from .levels import to_float

logger = logging.getLogger(__name__)

TAG_WATER = "WATER"
TAG_LEGACY_DISTANCE = "Distance"
NO_VALUE = "--"
UNIT_CM = "cm"

# Message shapes a node can be configured to emit
SHAPE_NUMERIC = "numeric"
SHAPE_STATUS = "status"
SHAPE_LEGACY = "legacy"
SHAPES = (SHAPE_NUMERIC, SHAPE_STATUS, SHAPE_LEGACY)


@dataclass(frozen=True)
class CurrentMessage:
    """``WATER`` line from current firmware."""
    value: Optional[float]
    secondary: Optional[float] = None
    status: Optional[str] = None
    with_unit: bool = False

    def logical(self) -> Tuple[Optional[float], Optional[str]]:
        return self.value, self.status


@dataclass(frozen=True)
class LegacyDistanceMessage:
    """``Distance: N cm`` line from legacy firmware."""
    distance: Optional[float]

    def logical(self) -> Tuple[Optional[float], Optional[str]]:
        return self.distance, None


@dataclass(frozen=True)
class UnknownMessage:
    """A line with an unrecognized tag (boot banners, debug output)."""
    tag: str
    raw: str

    def logical(self) -> Tuple[Optional[float], Optional[str]]:
        return None, None


DecodedMessage = Union[CurrentMessage, LegacyDistanceMessage, UnknownMessage]


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _parse_value(field: str) -> Tuple[Optional[float], bool]:
    """Parse a value field, returning (value, had_unit)."""
    text = field.strip()
    with_unit = False
    if text.lower().endswith(UNIT_CM):
        text = text[: -len(UNIT_CM)].strip()
        with_unit = True
    if text == NO_VALUE:
        return None, with_unit
    return to_float(text), with_unit


def decode_line(line: Union[str, bytes]) -> DecodedMessage:
    """Decode one line from the node.

    Args:
        line: The raw line, with or without its terminator.

    Returns:
        The decoded message.

    Raises:
        ProtocolDecodeError: If the line is empty or a known tag is malformed.
    """
    if isinstance(line, bytes):
        line = line.decode("ascii", errors="replace")

    text = line.strip()
    if not text:
        raise ProtocolDecodeError("Empty line", line)

    tag, sep, rest = text.partition(":")
    tag = tag.strip()

    if tag.upper() == TAG_WATER:
        fields = rest.split(":", 1)
        if not sep or len(fields) != 2:
            raise ProtocolDecodeError(f"Expected WATER:<value>:<suffix>, got {text!r}", line)
        value, with_unit = _parse_value(fields[0])
        suffix = fields[1].strip()

        secondary = None
        status = None
        if suffix:
            secondary = to_float(suffix)
            if secondary is None:
                status = suffix
        return CurrentMessage(value=value, secondary=secondary, status=status, with_unit=with_unit)

    if tag.upper() == TAG_LEGACY_DISTANCE.upper():
        if not sep:
            raise ProtocolDecodeError(f"Expected Distance:<value> cm, got {text!r}", line)
        # A trailing :<status> is tolerated; legacy status text is not used
        distance, _ = _parse_value(rest.split(":", 1)[0])
        return LegacyDistanceMessage(distance=distance)

    return UnknownMessage(tag=tag, raw=text)


def encode_message(message: DecodedMessage) -> str:
    """Encode a message as a newline-terminated line.

    Raises:
        ValueError: If the message cannot be represented on the wire.
    """
    if isinstance(message, CurrentMessage):
        value = NO_VALUE if message.value is None else _format_number(message.value)
        if message.with_unit:
            value += UNIT_CM
        if message.status is not None:
            if "\n" in message.status or "\r" in message.status:
                raise ValueError("Status text cannot contain line breaks")
            suffix = message.status
        elif message.secondary is not None:
            suffix = _format_number(message.secondary)
        else:
            suffix = ""
        return f"{TAG_WATER}:{value}:{suffix}\n"

    if isinstance(message, LegacyDistanceMessage):
        value = NO_VALUE if message.distance is None else _format_number(message.distance)
        return f"{TAG_LEGACY_DISTANCE}: {value} {UNIT_CM}\n"

    raise ValueError(f"Cannot encode {type(message).__name__}")
