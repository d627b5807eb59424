"""Tests for record normalization and the client subscription API."""

import pytest

from floodwatch.dashboard.client import (
    CURRENT_READING_ID,
    DashboardClient,
    normalize_history,
    normalize_record,
)
from floodwatch.shared.timestamps import TimestampCorrector

from tests.conftest import NOW_MS, FakeClock, settle


@pytest.fixture
def corrector():
    return TimestampCorrector(FakeClock())


class TestNormalizeRecord:
    """Store record to Reading."""

    def test_full_record(self, corrector):
        raw = {
            "waterLevel": "72",
            "distance": 5.8,
            "status": "Warning",
            "deviceId": "gauge-1",
            "timestamp": 1700000000,
            "firmware": "2.1",
        }
        reading = normalize_record(raw, "abc", corrector)
        assert reading.id == "abc"
        assert reading.water_level == 72.0
        assert reading.distance == 5.8
        assert reading.timestamp == 1700000000000
        assert reading.extra == {"firmware": "2.1"}

    def test_legacy_distance_only(self, corrector):
        """A distance-only record gets its level from the 15 cm rule."""
        reading = normalize_record({"distance": 3, "timestamp": 1000}, "legacy", corrector)
        assert reading.water_level == 80
        assert reading.status == "Warning"
        assert reading.device_id == "unknown"
        assert reading.timestamp == NOW_MS

    @pytest.mark.parametrize("raw", [None, "oops", {}, {"waterLevel": "high"}, {"status": "Safe"}])
    def test_unusable_records_are_dropped(self, corrector, raw):
        assert normalize_record(raw, "x", corrector) is None

    def test_history_snapshot(self, corrector):
        raw = {
            "1700000000000": {"waterLevel": 10, "timestamp": 1700000000000},
            "1700000060000": {"waterLevel": "bad"},
        }
        readings = normalize_history(raw, corrector)
        assert [r.id for r in readings] == ["1700000000000"]
        assert normalize_history(None, corrector) == []


class TestDashboardClient:
    @pytest.mark.asyncio
    async def test_subscriptions(self, memory_store, corrector):
        await memory_store.connect()
        client = DashboardClient(memory_store, corrector)

        current = []
        history = []
        client.subscribe_current(current.append)
        client.subscribe_history(history.append)
        await settle()
        assert current == [None]
        assert history == [[]]

        await memory_store.write("currentState", {"waterLevel": 40, "timestamp": NOW_MS})
        await memory_store.write(f"history/{NOW_MS}", {"waterLevel": 40, "timestamp": NOW_MS})
        await settle()

        assert current[-1].id == CURRENT_READING_ID
        assert [r.id for r in history[-1]] == [str(NOW_MS)]

    @pytest.mark.asyncio
    async def test_fetch_current_once(self, memory_store, corrector):
        await memory_store.connect()
        client = DashboardClient(memory_store, corrector)
        assert await client.fetch_current_once() is None

        await memory_store.write("currentState", {"waterLevel": 40, "timestamp": NOW_MS})
        reading = await client.fetch_current_once()
        assert reading.water_level == 40
        assert reading.status == "Safe"

    @pytest.mark.asyncio
    async def test_minute_data_newest_first(self, memory_store, corrector):
        await memory_store.connect()
        client = DashboardClient(memory_store, corrector)
        deliveries = []
        client.subscribe_minute_data(deliveries.append)
        await settle()
        assert deliveries == [[]]

        await memory_store.write("minuteByMinuteData/2023-11-14-22-12", {"waterLevel": 30, "timestamp": NOW_MS - 60_000})
        await memory_store.write("minuteByMinuteData/2023-11-14-22-13", {"waterLevel": 35, "timestamp": NOW_MS})
        await memory_store.write("minuteByMinuteData/2023-11-14-22-11", {"waterLevel": "n/a", "timestamp": NOW_MS})
        await settle()

        latest = deliveries[-1]
        assert [r.id for r in latest] == ["2023-11-14-22-13", "2023-11-14-22-12"]
        assert latest[0].status == "Safe"
