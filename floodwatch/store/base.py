"""Cloud store interface and path helpers.

The store is a path-addressed JSON tree with read, write and subscribe.
Paths are slash separated with no leading slash, e.g. ``history/1700000000000``.
"""

from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from typing import Any, Callable, List, Optional
import logging

logger = logging.getLogger(__name__)

CURRENT_STATE_PATH = "currentState"
HISTORY_PATH = "history"
SYSTEM_LOGS_PATH = "systemLogs"
# One sample per minute for the chart, keyed YYYY-MM-DD-HH-MM
MINUTE_DATA_PATH = "minuteByMinuteData"

# Receives the full value at the subscribed path, or None for "no data"
SubscriptionCallback = Callable[[Optional[Any]], None]
Unsubscribe = Callable[[], None]


def history_path(timestamp_ms: int) -> str:
    return f"{HISTORY_PATH}/{int(timestamp_ms)}"


def system_log_path(timestamp_ms: int) -> str:
    return f"{SYSTEM_LOGS_PATH}/{int(timestamp_ms)}"


def minute_key(timestamp_ms: int, tz: Optional[tzinfo] = None) -> str:
    """Calendar minute of a timestamp, in tz (local time by default)."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz).strftime("%Y-%m-%d-%H-%M")


def minute_data_path(timestamp_ms: int, tz: Optional[tzinfo] = None) -> str:
    return f"{MINUTE_DATA_PATH}/{minute_key(timestamp_ms, tz)}"


def split_path(path: str) -> List[str]:
    return [part for part in path.strip("/").split("/") if part]


def join_path(*parts: str) -> str:
    return "/".join(p for part in parts for p in split_path(part))


def is_related(subscribed: str, written: str) -> bool:
    """True if a write at ``written`` changes the value at ``subscribed``."""
    a, b = split_path(subscribed), split_path(written)
    shorter = min(len(a), len(b))
    return a[:shorter] == b[:shorter]


def get_in_tree(tree: Any, path: str) -> Any:
    """Return the value at path inside a nested dict, None if absent."""
    node = tree
    for part in split_path(path):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def set_in_tree(tree: Any, path: str, value: Any) -> Any:
    """Set (or delete, for None) the value at path and return the new root."""
    parts = split_path(path)
    if not parts:
        return value

    if not isinstance(tree, dict):
        tree = {}

    node = tree
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child

    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = value
    return tree


class CloudStore(ABC):
    """Base class for cloud store sessions.

    Subscription callbacks always run on the event loop that created the
    subscription and never fire after their unsubscribe handle is called.
    """

    @abstractmethod
    async def connect(self) -> bool:
        """Open the store session. Returns True when usable."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the session is still usable."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def read(self, path: str) -> Optional[Any]:
        """Read the value at path once; None when there is no data."""
        pass

    @abstractmethod
    async def write(self, path: str, value: Any) -> None:
        """Overwrite the value at path.

        Raises:
            StoreError: If the write was not accepted.
        """
        pass

    @abstractmethod
    def subscribe(self, path: str, callback: SubscriptionCallback) -> Unsubscribe:
        """Deliver the value at path now and after every change.

        Must be called from a running event loop.
        """
        pass
