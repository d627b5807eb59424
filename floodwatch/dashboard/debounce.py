"""Trailing-edge debouncer on the asyncio event loop."""

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesces bursts of payloads into one delayed emission.

    The first push opens a window of ``window`` seconds. Pushes inside the
    window replace the pending payload (and the scheduled timer, keeping the
    original deadline). When the window elapses the latest payload is
    emitted once.
    """

    def __init__(
        self,
        window: float,
        callback: Callable[[Any], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.window = window
        self.callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._deadline: Optional[float] = None
        self._payload: Any = None
        self._closed = False
        self.emissions = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def push(self, payload: Any) -> None:
        if self._closed:
            return

        loop = self._get_loop()
        if self._handle is None:
            self._deadline = loop.time() + self.window
        else:
            self._handle.cancel()

        self._payload = payload
        self._handle = loop.call_at(self._deadline, self._fire)

    def _fire(self) -> None:
        payload = self._payload
        self._handle = None
        self._deadline = None
        self._payload = None

        self.emissions += 1
        try:
            self.callback(payload)
        except Exception as e:
            logger.error(f"Debounced callback failed: {e}")

    def flush(self) -> None:
        """Emit the pending payload now, if there is one."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._fire()

    def close(self) -> None:
        """Flush once, then ignore further pushes. Safe to call twice."""
        if self._closed:
            return
        self.flush()
        self._closed = True
