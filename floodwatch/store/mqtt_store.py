"""Cloud store backed by retained MQTT messages.

Each store path maps to a retained topic under the configured prefix:
``currentState`` -> ``floodwatch/currentState``, ``history/<ts>`` ->
``floodwatch/history/<ts>``. A subscriber to ``floodwatch/history/#``
receives every retained history entry, which rebuilds the full history set.
"""

import asyncio
import copy
import itertools
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from floodwatch.shared.errors import StoreError
from floodwatch.shared.mqtt import MQTTConfig
from .base import (
    CloudStore,
    SubscriptionCallback,
    Unsubscribe,
    join_path,
    set_in_tree,
    split_path,
)

logger = logging.getLogger(__name__)


@dataclass
class _Subscription:
    path: str
    callback: SubscriptionCallback
    loop: asyncio.AbstractEventLoop
    mirror: Any = None
    active: bool = True
    lock: threading.Lock = field(default_factory=threading.Lock)


class MQTTStore(CloudStore):
    """Store session over an MQTT broker (paho-mqtt v2 API)."""

    def __init__(
        self,
        config: MQTTConfig,
        connect_timeout: float = 10.0,
        publish_timeout: float = 5.0,
        read_timeout: float = 2.0,
    ):
        self.config = config
        self.connect_timeout = connect_timeout
        self.publish_timeout = publish_timeout
        self.read_timeout = read_timeout

        self.client: Optional[mqtt.Client] = None
        self._connected = False
        self._connect_event = threading.Event()
        self._ids = itertools.count()
        self._subscriptions: Dict[int, _Subscription] = {}
        self._lock = threading.Lock()

    def topic(self, path: str) -> str:
        return "/".join(split_path(self.config.topic_prefix) + split_path(path))

    def _filter(self, path: str) -> str:
        return f"{self.topic(path)}/#"

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Handle connection to broker."""
        if reason_code == 0:
            logger.info(f"Connected to MQTT broker at {self.config.broker}:{self.config.port}")
            self._connected = True
            # Restore subscriptions after a reconnect
            with self._lock:
                filters = {self._filter(sub.path) for sub in self._subscriptions.values()}
            for topic_filter in filters:
                client.subscribe(topic_filter, qos=self.config.qos)
        else:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            self._connected = False
        self._connect_event.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        """Handle disconnection from broker."""
        self._connected = False
        if reason_code != 0:
            logger.warning(f"Unexpected MQTT disconnection (reason={reason_code})")
            # Subscribers see "no data" until messages flow again
            with self._lock:
                subs = list(self._subscriptions.values())
            for sub in subs:
                self._dispatch(sub, None)
        else:
            logger.info("Disconnected from MQTT broker")

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage):
        """Route a retained/live message into every matching subscription mirror."""
        try:
            value = json.loads(msg.payload.decode("utf-8")) if msg.payload else None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to parse payload from {msg.topic}: {e}")
            return

        topic_parts = split_path(msg.topic)
        with self._lock:
            subs = list(self._subscriptions.values())

        for sub in subs:
            base = split_path(self.topic(sub.path))
            if topic_parts[: len(base)] != base:
                continue
            relative = "/".join(topic_parts[len(base):])
            with sub.lock:
                sub.mirror = set_in_tree(sub.mirror, relative, value)
                snapshot = copy.deepcopy(sub.mirror)
            self._dispatch(sub, snapshot)

    def _dispatch(self, sub: _Subscription, value: Any) -> None:
        def fire():
            if sub.active:
                sub.callback(value)

        try:
            sub.loop.call_soon_threadsafe(fire)
        except RuntimeError:
            # Loop already closed
            sub.active = False

    def _connect_blocking(self) -> bool:
        self._connect_event.clear()

        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=self.config.client_id,
            reconnect_on_failure=False,  # Reconnects are driven by the link supervisor
        )
        if self.config.username:
            self.client.username_pw_set(self.config.username, self.config.password or None)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        logger.info(f"Connecting to MQTT broker at {self.config.broker}:{self.config.port}")

        try:
            self.client.connect(self.config.broker, self.config.port, keepalive=self.config.keepalive)
            self.client.loop_start()

            # Wait for connection callback
            if self._connect_event.wait(timeout=self.connect_timeout):
                return self._connected
            logger.error("Timeout waiting for MQTT connection")
            return False
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            return False

    async def connect(self) -> bool:
        if self.client is not None:
            await self.close()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._connect_blocking)

    async def ping(self) -> bool:
        return bool(self._connected and self.client is not None and self.client.is_connected())

    async def close(self) -> None:
        if self.client:
            self.client.loop_stop()
            self.client.disconnect()
            self.client = None
        self._connected = False

    async def write(self, path: str, value: Any) -> None:
        if not self._connected or not self.client:
            raise StoreError("Not connected to MQTT broker", path)

        topic = self.topic(path)
        payload = json.dumps(value)
        info = self.client.publish(topic, payload, qos=self.config.qos, retain=True)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise StoreError(f"Failed to publish to {topic}: rc={info.rc}", path)

        if self.config.qos > 0:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, info.wait_for_publish, self.publish_timeout)
            except (RuntimeError, ValueError) as e:
                raise StoreError(f"Publish to {topic} failed: {e}", path) from e
            if not info.is_published():
                raise StoreError(f"Publish to {topic} not acknowledged", path)

        logger.debug(f"Published to {topic}: {payload}")

    async def read(self, path: str) -> Optional[Any]:
        """Collect retained messages for read_timeout and return the value."""
        if not self._connected:
            return None

        loop = asyncio.get_running_loop()
        first: asyncio.Future = loop.create_future()
        latest: Dict[str, Any] = {}

        def on_value(value):
            latest["value"] = value
            if value is not None and not first.done():
                first.set_result(value)

        unsubscribe = self.subscribe(path, on_value)
        try:
            await asyncio.wait_for(first, timeout=self.read_timeout)
            # Give the rest of a retained burst a moment to arrive
            await asyncio.sleep(0.1)
        except asyncio.TimeoutError:
            pass
        finally:
            unsubscribe()
        return latest.get("value")

    def subscribe(self, path: str, callback: SubscriptionCallback) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        sub_id = next(self._ids)
        sub = _Subscription(path=join_path(path), callback=callback, loop=loop)
        topic_filter = self._filter(sub.path)

        with self._lock:
            sibling = next(
                (s for s in self._subscriptions.values() if self._filter(s.path) == topic_filter),
                None,
            )
            self._subscriptions[sub_id] = sub

        if self.client and self._connected:
            if sibling is not None:
                # The broker will not resend retained messages; start from the sibling's view
                with sibling.lock:
                    sub.mirror = copy.deepcopy(sibling.mirror)
                self._dispatch(sub, copy.deepcopy(sub.mirror))
            else:
                self.client.subscribe(topic_filter, qos=self.config.qos)
        else:
            self._dispatch(sub, None)

        def unsubscribe():
            sub.active = False
            with self._lock:
                self._subscriptions.pop(sub_id, None)
                still_used = any(self._filter(s.path) == topic_filter for s in self._subscriptions.values())
            if not still_used and self.client and self._connected:
                self.client.unsubscribe(topic_filter)

        return unsubscribe
