"""Merge the current-state and history streams for a dashboard consumer."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from floodwatch.shared.models import Reading
from floodwatch.store.base import Unsubscribe
from .client import DashboardClient
from .debounce import Debouncer

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_WINDOW = 2.0


class ReconcilerStatus(Enum):
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    EMITTING = "emitting"
    CLOSED = "closed"


@dataclass
class ReconcilerState:
    """Current reading plus the union of every history reading seen."""
    current: Optional[Reading] = None
    history: Dict[str, Reading] = field(default_factory=dict)

    def set_current(self, reading: Optional[Reading]) -> bool:
        """Replace the current reading. Returns True if anything changed."""
        if reading == self.current:
            return False
        self.current = reading
        return True

    def merge_history(self, readings: Iterable[Reading]) -> bool:
        """Union readings into history by id. Returns True if anything changed."""
        changed = False
        for reading in readings:
            if self.history.get(reading.id) != reading:
                self.history[reading.id] = reading
                changed = True
        return changed

    def merged(self) -> List[Reading]:
        """Current reading first, then history newest first.

        At most one reading per device timestamp: history entries at the
        current reading's timestamp are left out, and among history entries
        sharing a timestamp the greater id is kept. Readings stamped with the
        receiver clock never collide; they are only deduplicated by id.
        """
        result: List[Reading] = []
        seen = set()
        if self.current is not None:
            result.append(self.current)
            if not self.current.timestamp_substituted:
                seen.add(self.current.timestamp)

        for reading in sorted(self.history.values(), key=lambda r: (r.timestamp, r.id), reverse=True):
            if not reading.timestamp_substituted:
                if reading.timestamp in seen:
                    continue
                seen.add(reading.timestamp)
            result.append(reading)
        return result


class StreamReconciler:
    """Subscribes to both streams and emits debounced merged views.

    Lifecycle: IDLE -> SUBSCRIBED (start) -> EMITTING (first emission),
    then CLOSED. close() flushes a pending emission once and detaches both
    subscriptions; the callback never fires after it returns.
    """

    def __init__(
        self,
        client: DashboardClient,
        callback: Callable[[List[Reading]], None],
        debounce_window: float = DEFAULT_DEBOUNCE_WINDOW,
    ):
        self.client = client
        self.callback = callback
        self.state = ReconcilerState()
        self.status = ReconcilerStatus.IDLE
        self._debouncer = Debouncer(debounce_window, self._emit)
        self._unsubscribers: List[Unsubscribe] = []

    async def start(self) -> None:
        """Subscribe to both streams and fetch the current reading once."""
        if self.status != ReconcilerStatus.IDLE:
            raise RuntimeError(f"Cannot start a reconciler that is {self.status.value}")

        self._unsubscribers = [
            self.client.subscribe_current(self.on_current),
            self.client.subscribe_history(self.on_history),
        ]
        self.status = ReconcilerStatus.SUBSCRIBED
        logger.debug("Subscribed to current state and history")

        current = await self.client.fetch_current_once()
        if current is not None:
            self.on_current(current)

    def on_current(self, reading: Optional[Reading]) -> None:
        if self.status == ReconcilerStatus.CLOSED:
            return
        if self.state.set_current(reading):
            self._changed()

    def on_history(self, readings: List[Reading]) -> None:
        if self.status == ReconcilerStatus.CLOSED:
            return
        if self.state.merge_history(readings):
            self._changed()

    def _changed(self) -> None:
        self._debouncer.push(self.state.merged())

    def _emit(self, readings: List[Reading]) -> None:
        if self.status == ReconcilerStatus.SUBSCRIBED:
            self.status = ReconcilerStatus.EMITTING
        self.callback(readings)

    def close(self) -> None:
        if self.status == ReconcilerStatus.CLOSED:
            return

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        self._debouncer.close()
        self.status = ReconcilerStatus.CLOSED

    async def __aenter__(self) -> "StreamReconciler":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


async def watch(client: DashboardClient, debounce_window: float = DEFAULT_DEBOUNCE_WINDOW):
    """Async iterator over merged views, for consumers that prefer pulling."""
    queue: asyncio.Queue = asyncio.Queue()
    reconciler = StreamReconciler(client, queue.put_nowait, debounce_window)
    await reconciler.start()
    try:
        while True:
            yield await queue.get()
    finally:
        reconciler.close()
