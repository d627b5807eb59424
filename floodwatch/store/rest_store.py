"""Cloud store over a Firebase Realtime Database style REST API.

Reads and writes are ``GET``/``PUT`` on ``<base_url>/<path>.json``.
Subscriptions use the streaming endpoint (``Accept: text/event-stream``),
which sends ``put`` and ``patch`` events relative to the subscribed path.
The auth token is passed through as the ``auth`` query parameter.
"""

import asyncio
import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import aiohttp

from floodwatch.shared.errors import StoreError
from .base import (
    CURRENT_STATE_PATH,
    CloudStore,
    SubscriptionCallback,
    Unsubscribe,
    join_path,
    set_in_tree,
)

logger = logging.getLogger(__name__)


@dataclass
class ServerEvent:
    """One server-sent event."""
    event: str
    data: str


class EventStreamParser:
    """Incremental parser for ``text/event-stream`` bodies."""

    def __init__(self):
        self._event = ""
        self._data: List[str] = []

    def feed_line(self, line: str) -> Optional[ServerEvent]:
        """Feed one line (without terminator); return an event when one completes."""
        if line == "":
            if not self._event and not self._data:
                return None
            event = ServerEvent(event=self._event or "message", data="\n".join(self._data))
            self._event = ""
            self._data = []
            return event

        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        return None

    def feed(self, chunk: str) -> Iterator[ServerEvent]:
        for line in chunk.splitlines():
            event = self.feed_line(line)
            if event is not None:
                yield event


def apply_event(mirror: Any, event: ServerEvent) -> Tuple[Any, bool]:
    """Apply a put/patch event to the local mirror.

    Returns:
        (new mirror, changed). Unknown events leave the mirror untouched.
    """
    if event.event not in ("put", "patch"):
        return mirror, False

    body = json.loads(event.data) if event.data else {}
    path = body.get("path", "/")
    data = body.get("data")

    if event.event == "put":
        return set_in_tree(mirror, path, data), True

    if isinstance(data, dict):
        for key, value in data.items():
            mirror = set_in_tree(mirror, join_path(path, key), value)
    return mirror, True


class RestStore(CloudStore):
    """Store session over HTTPS using aiohttp."""

    def __init__(
        self,
        base_url: str,
        auth_token: str = "",
        timeout: float = 10.0,
        ping_path: str = CURRENT_STATE_PATH,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.ping_path = ping_path
        self.session: Optional[aiohttp.ClientSession] = None
        self._streams: Dict[int, asyncio.Task] = {}
        self._next_id = 0

    def url(self, path: str) -> str:
        return f"{self.base_url}/{join_path(path)}.json"

    def _params(self, **extra: str) -> Dict[str, str]:
        params = dict(extra)
        if self.auth_token:
            params["auth"] = self.auth_token
        return params

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def connect(self) -> bool:
        self._session()
        return await self.ping()

    async def ping(self) -> bool:
        try:
            async with self._session().get(
                self.url(self.ping_path), params=self._params(shallow="true")
            ) as response:
                return response.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Store ping failed: {e}")
            return False

    async def close(self) -> None:
        for task in list(self._streams.values()):
            task.cancel()
        self._streams.clear()
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def read(self, path: str) -> Optional[Any]:
        try:
            async with self._session().get(self.url(path), params=self._params()) as response:
                if response.status != 200:
                    logger.warning(f"Read of {path} returned HTTP {response.status}")
                    return None
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            logger.error(f"Error reading {path}: {e}")
            return None

    async def write(self, path: str, value: Any) -> None:
        try:
            async with self._session().put(
                self.url(path), params=self._params(), json=value
            ) as response:
                if response.status != 200:
                    text = await response.text()
                    raise StoreError(f"Write to {path} returned HTTP {response.status}: {text}", path)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StoreError(f"Write to {path} failed: {e}", path) from e

    async def _stream(self, path: str, callback: SubscriptionCallback) -> None:
        """Follow the event stream for path until cancelled or broken."""
        mirror: Any = None
        parser = EventStreamParser()
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    self.url(path),
                    params=self._params(),
                    headers={"Accept": "text/event-stream"},
                ) as response:
                    if response.status != 200:
                        logger.warning(f"Subscription to {path} returned HTTP {response.status}")
                        callback(None)
                        return

                    async for raw in response.content:
                        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                        event = parser.feed_line(line)
                        if event is None:
                            continue
                        if event.event in ("cancel", "auth_revoked"):
                            logger.warning(f"Subscription to {path} ended by server: {event.event}")
                            callback(None)
                            return
                        mirror, changed = apply_event(mirror, event)
                        if changed:
                            callback(copy.deepcopy(mirror))
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            # No retry on the read path: report "no data"
            logger.error(f"Subscription to {path} failed: {e}")
            callback(None)

    def subscribe(self, path: str, callback: SubscriptionCallback) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        stream_id = self._next_id
        self._next_id += 1
        task = loop.create_task(self._stream(join_path(path), callback))
        self._streams[stream_id] = task
        task.add_done_callback(lambda _: self._streams.pop(stream_id, None))

        def unsubscribe():
            task.cancel()

        return unsubscribe
