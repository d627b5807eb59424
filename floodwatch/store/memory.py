"""In-process cloud store."""

import asyncio
import copy
import itertools
import logging
from typing import Any, Dict, Optional, Tuple

from floodwatch.shared.errors import StoreError
from .base import (
    CloudStore,
    SubscriptionCallback,
    Unsubscribe,
    get_in_tree,
    is_related,
    join_path,
    set_in_tree,
)

logger = logging.getLogger(__name__)


class MemoryStore(CloudStore):
    """Keeps the whole tree in a dict.

    Useful for running gateway and dashboard in one process, and for tests.
    Deliveries are scheduled with ``call_soon`` so they behave like a
    remote store: they arrive on a later loop iteration.
    """

    def __init__(self):
        self._root: Dict[str, Any] = {}
        self._connected = False
        self._ids = itertools.count()
        self._subscriptions: Dict[int, Tuple[str, SubscriptionCallback, asyncio.AbstractEventLoop]] = {}

    async def connect(self) -> bool:
        self._connected = True
        return True

    async def ping(self) -> bool:
        return self._connected

    async def close(self) -> None:
        self._connected = False
        self._subscriptions.clear()

    async def read(self, path: str) -> Optional[Any]:
        return copy.deepcopy(get_in_tree(self._root, path))

    async def write(self, path: str, value: Any) -> None:
        if not self._connected:
            raise StoreError("Store session is not connected", path)

        path = join_path(path)
        self._root = set_in_tree(self._root, path, copy.deepcopy(value))
        if not isinstance(self._root, dict):
            self._root = {}
        logger.debug(f"Wrote {path}")

        for sub_id, (sub_path, _, _) in list(self._subscriptions.items()):
            if is_related(sub_path, path):
                self._deliver(sub_id)

    def _deliver(self, sub_id: int) -> None:
        entry = self._subscriptions.get(sub_id)
        if entry is None:
            return
        path, _, loop = entry

        def fire():
            # Re-check: the subscription may be gone by the time this runs
            current = self._subscriptions.get(sub_id)
            if current is None:
                return
            current[1](copy.deepcopy(get_in_tree(self._root, path)))

        loop.call_soon(fire)

    def subscribe(self, path: str, callback: SubscriptionCallback) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        sub_id = next(self._ids)
        self._subscriptions[sub_id] = (join_path(path), callback, loop)
        self._deliver(sub_id)

        def unsubscribe():
            self._subscriptions.pop(sub_id, None)

        return unsubscribe
