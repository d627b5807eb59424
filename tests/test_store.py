"""Tests for the cloud store interface and backends."""

import json
from datetime import timezone
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest

from floodwatch.shared.errors import StoreError
from floodwatch.shared.mqtt import MQTTConfig
from floodwatch.store import StoreConfig, create_store
from floodwatch.store.base import (
    get_in_tree,
    history_path,
    is_related,
    join_path,
    minute_data_path,
    minute_key,
    set_in_tree,
    system_log_path,
)
from floodwatch.store.memory import MemoryStore
from floodwatch.store.mqtt_store import MQTTStore
from floodwatch.store.rest_store import EventStreamParser, RestStore, ServerEvent, apply_event

from tests.conftest import settle


class TestPaths:
    def test_record_paths(self):
        assert history_path(1700000000000) == "history/1700000000000"
        assert system_log_path(1700000000000.0) == "systemLogs/1700000000000"

    def test_minute_paths(self):
        """Readings within one calendar minute share a key."""
        assert minute_key(1700000000000, timezone.utc) == "2023-11-14-22-13"
        assert minute_key(1700000039999, timezone.utc) == "2023-11-14-22-13"
        assert minute_key(1700000040000, timezone.utc) == "2023-11-14-22-14"
        assert minute_data_path(1700000000000, timezone.utc) == "minuteByMinuteData/2023-11-14-22-13"

    def test_join_and_relation(self):
        assert join_path("/history/", "17/") == "history/17"
        assert is_related("history", "history/17")
        assert is_related("history/17", "history")
        assert not is_related("currentState", "history/17")

    def test_tree_helpers(self):
        """set_in_tree creates parents and None deletes."""
        tree = set_in_tree(None, "history/1", {"waterLevel": 5})
        assert get_in_tree(tree, "history/1/waterLevel") == 5
        tree = set_in_tree(tree, "history/1", None)
        assert get_in_tree(tree, "history/1") is None
        assert set_in_tree(tree, "", {"a": 1}) == {"a": 1}


class TestMemoryStore:
    """In-process store semantics."""

    @pytest.mark.asyncio
    async def test_write_requires_connect(self, memory_store):
        with pytest.raises(StoreError):
            await memory_store.write("currentState", {"waterLevel": 1})

    @pytest.mark.asyncio
    async def test_read_write(self, memory_store):
        await memory_store.connect()
        await memory_store.write("history/1", {"waterLevel": 1})
        await memory_store.write("history/2", {"waterLevel": 2})
        assert await memory_store.read("history") == {
            "1": {"waterLevel": 1},
            "2": {"waterLevel": 2},
        }

    @pytest.mark.asyncio
    async def test_subscribe_delivers_initial_and_changes(self, memory_store):
        """Subscribers get the current value, then one delivery per related write."""
        await memory_store.connect()
        await memory_store.write("currentState", {"waterLevel": 1})

        received = []
        unsubscribe = memory_store.subscribe("currentState", received.append)
        await settle()
        await memory_store.write("currentState", {"waterLevel": 2})
        await memory_store.write("history/9", {"waterLevel": 2})
        await settle()

        assert received == [{"waterLevel": 1}, {"waterLevel": 2}]

        unsubscribe()
        await memory_store.write("currentState", {"waterLevel": 3})
        await settle()
        assert len(received) == 2

    @pytest.mark.asyncio
    async def test_no_delivery_after_unsubscribe_with_pending(self, memory_store):
        """A delivery already scheduled is skipped once unsubscribed."""
        await memory_store.connect()
        received = []
        unsubscribe = memory_store.subscribe("currentState", received.append)
        unsubscribe()
        await settle()
        assert received == []


class TestEventStream:
    """Server-sent event parsing for the REST backend."""

    def test_parser(self):
        parser = EventStreamParser()
        body = (
            ": keep-alive comment\n"
            "event: put\n"
            'data: {"path": "/", "data": {"1": {"waterLevel": 5}}}\n'
            "\n"
            "event: keep-alive\n"
            "data: null\n"
            "\n"
        )
        events = list(parser.feed(body))
        assert [e.event for e in events] == ["put", "keep-alive"]
        assert json.loads(events[0].data)["data"]["1"]["waterLevel"] == 5

    def test_apply_put_and_patch(self):
        put = ServerEvent("put", json.dumps({"path": "/", "data": {"1": {"waterLevel": 5}}}))
        mirror, changed = apply_event(None, put)
        assert changed

        patch = ServerEvent("patch", json.dumps({"path": "/2", "data": {"waterLevel": 7}}))
        mirror, changed = apply_event(mirror, patch)
        assert changed
        assert mirror == {"1": {"waterLevel": 5}, "2": {"waterLevel": 7}}

        delete = ServerEvent("put", json.dumps({"path": "/1", "data": None}))
        mirror, _ = apply_event(mirror, delete)
        assert mirror == {"2": {"waterLevel": 7}}

    def test_keep_alive_is_ignored(self):
        mirror, changed = apply_event({"a": 1}, ServerEvent("keep-alive", "null"))
        assert not changed
        assert mirror == {"a": 1}

    def test_urls_carry_auth(self):
        """The auth token is passed through unparsed as a query parameter."""
        store = RestStore("https://example.firebaseio.com/", auth_token="opaque:token")
        assert store.url("history/17") == "https://example.firebaseio.com/history/17.json"
        assert store._params(shallow="true") == {"shallow": "true", "auth": "opaque:token"}


class TestMQTTStore:
    """Topic mapping and message routing with a mocked paho client."""

    def make_store(self):
        store = MQTTStore(MQTTConfig(topic_prefix="floodwatch", qos=0))
        store.client = MagicMock()
        store._connected = True
        return store

    def test_topics(self):
        store = self.make_store()
        assert store.topic("currentState") == "floodwatch/currentState"
        assert store.topic("history/17") == "floodwatch/history/17"

    @pytest.mark.asyncio
    async def test_write_publishes_retained(self):
        store = self.make_store()
        store.client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
        await store.write("history/17", {"waterLevel": 5})
        store.client.publish.assert_called_once_with(
            "floodwatch/history/17", json.dumps({"waterLevel": 5}), qos=0, retain=True
        )

    @pytest.mark.asyncio
    async def test_write_when_disconnected(self):
        store = self.make_store()
        store._connected = False
        with pytest.raises(StoreError):
            await store.write("currentState", {})

    @pytest.mark.asyncio
    async def test_messages_rebuild_history(self):
        """Retained history topics are folded into one mirror."""
        store = self.make_store()
        received = []
        store.subscribe("history", received.append)
        store.client.subscribe.assert_called_once_with("floodwatch/history/#", qos=0)

        for ts, level in ((1, 5), (2, 6)):
            msg = mqtt.MQTTMessage(topic=f"floodwatch/history/{ts}".encode())
            msg.payload = json.dumps({"waterLevel": level}).encode()
            store._on_message(store.client, None, msg)
        await settle()

        assert received[-1] == {"1": {"waterLevel": 5}, "2": {"waterLevel": 6}}

    @pytest.mark.asyncio
    async def test_unexpected_disconnect_reports_no_data(self):
        store = self.make_store()
        received = []
        store.subscribe("currentState", received.append)
        store._on_disconnect(store.client, None, None, 7, None)
        await settle()
        assert received[-1] is None


class TestCreateStore:
    def test_backends(self):
        assert isinstance(create_store(StoreConfig()), MemoryStore)
        assert isinstance(create_store(StoreConfig(backend="rest", base_url="https://x")), RestStore)
        assert isinstance(create_store(StoreConfig(backend="mqtt")), MQTTStore)

    def test_rest_needs_url(self):
        with pytest.raises(ValueError):
            create_store(StoreConfig(backend="rest"))

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store(StoreConfig(backend="sqlite"))
