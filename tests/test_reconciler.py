"""Tests for stream reconciliation on the dashboard side."""

import asyncio
import itertools

import pytest

from floodwatch.dashboard import (
    CURRENT_READING_ID,
    DashboardClient,
    ReconcilerState,
    ReconcilerStatus,
    StreamReconciler,
    watch,
)
from floodwatch.dashboard.client import normalize_history, normalize_record
from floodwatch.shared.models import Reading
from floodwatch.shared.timestamps import TimestampCorrector

from tests.conftest import NOW_MS, FakeClock, settle


def reading(id, ts, level=50.0):
    return Reading(id=id, water_level=level, timestamp=ts)


def record(level, ts):
    return {"waterLevel": level, "status": "Safe", "deviceId": "gauge-1", "timestamp": ts}


class TestReconcilerState:
    """Merge semantics."""

    def test_current_first_then_newest_history(self):
        state = ReconcilerState()
        state.merge_history([reading("a", 1000), reading("b", 3000), reading("c", 2000)])
        state.set_current(reading(CURRENT_READING_ID, 4000))
        assert [r.id for r in state.merged()] == [CURRENT_READING_ID, "b", "c", "a"]

    def test_history_matching_current_is_deduplicated(self):
        """The history copy of the current record is not listed twice."""
        state = ReconcilerState()
        state.set_current(reading(CURRENT_READING_ID, 3000))
        state.merge_history([reading("3000", 3000), reading("2000", 2000)])
        assert [r.id for r in state.merged()] == [CURRENT_READING_ID, "2000"]

    def test_timestamp_collision_keeps_greater_id(self):
        state = ReconcilerState()
        state.merge_history([reading("a", 1000), reading("z", 1000)])
        assert [r.id for r in state.merged()] == ["z"]

    def test_idempotent(self):
        """Merging the same batch twice changes nothing."""
        batch = [reading("a", 1000), reading("b", 2000)]
        state = ReconcilerState()
        assert state.merge_history(batch) is True
        first = state.merged()
        assert state.merge_history(batch) is False
        assert state.merged() == first

    def test_order_independent(self):
        """Any delivery order of the same batches yields the same merged view."""
        batches = [
            [reading("a", 1000)],
            [reading("b", 2000), reading("c", 2000)],
            [reading("d", 500), reading("a", 1000)],
        ]
        views = []
        for order in itertools.permutations(batches):
            state = ReconcilerState()
            for batch in order:
                state.merge_history(batch)
            views.append(state.merged())
        assert all(view == views[0] for view in views)

    def test_receiver_stamped_history_is_kept(self):
        """Uptime-clock records all get the same receiver time but stay distinct."""
        corrector = TimestampCorrector(FakeClock(NOW_MS))
        history = normalize_history(
            {"-k1": record(10, 1000), "-k2": record(20, 2000), "-k3": record(30, 3000)},
            corrector,
        )
        state = ReconcilerState()
        state.merge_history(history)
        state.set_current(normalize_record(record(30, 3000), CURRENT_READING_ID, corrector))

        merged = state.merged()
        assert [r.id for r in merged] == [CURRENT_READING_ID, "-k3", "-k2", "-k1"]
        assert all(r.timestamp == NOW_MS for r in merged)

    def test_device_time_collision_still_applies(self):
        """A plausible timestamp shared with the current reading is still dropped."""
        corrector = TimestampCorrector(FakeClock(NOW_MS))
        state = ReconcilerState()
        state.merge_history(normalize_history({"-k1": record(10, 1000), "-k2": record(20, NOW_MS - 5)}, corrector))
        state.set_current(normalize_record(record(20, NOW_MS - 5), CURRENT_READING_ID, corrector))
        assert [r.id for r in state.merged()] == [CURRENT_READING_ID, "-k1"]

    def test_set_current_reports_change(self):
        state = ReconcilerState()
        assert state.set_current(reading(CURRENT_READING_ID, 1)) is True
        assert state.set_current(reading(CURRENT_READING_ID, 1)) is False
        assert state.set_current(None) is True


class TestStreamReconciler:
    """Subscriptions, debouncing and lifecycle against a MemoryStore."""

    async def connected_client(self, store):
        await store.connect()
        return DashboardClient(store, TimestampCorrector(FakeClock()))

    @pytest.mark.asyncio
    async def test_two_updates_in_window_emit_once(self, memory_store):
        """Two current-state updates 500 ms apart in a 2 s window give one emission."""
        client = await self.connected_client(memory_store)
        emitted = []
        reconciler = StreamReconciler(client, emitted.append, debounce_window=0.2)
        await reconciler.start()

        await memory_store.write("currentState", record(10, NOW_MS))
        await asyncio.sleep(0.05)
        await memory_store.write("currentState", record(20, NOW_MS + 500))
        await asyncio.sleep(0.3)

        assert len(emitted) == 1
        assert emitted[0][0].id == CURRENT_READING_ID
        assert emitted[0][0].water_level == 20
        assert reconciler.status == ReconcilerStatus.EMITTING
        reconciler.close()

    @pytest.mark.asyncio
    async def test_start_fetches_current_once(self, memory_store):
        client = await self.connected_client(memory_store)
        await memory_store.write("currentState", record(33, NOW_MS))
        await memory_store.write(f"history/{NOW_MS - 60000}", record(30, NOW_MS - 60000))

        emitted = []
        reconciler = StreamReconciler(client, emitted.append, debounce_window=0.05)
        await reconciler.start()
        assert reconciler.state.current.water_level == 33
        await asyncio.sleep(0.1)

        assert [r.water_level for r in emitted[-1]] == [33, 30]
        reconciler.close()

    @pytest.mark.asyncio
    async def test_close_flushes_and_detaches(self, memory_store):
        """close() emits the pending view once; later writes never reach the callback."""
        client = await self.connected_client(memory_store)
        emitted = []
        reconciler = StreamReconciler(client, emitted.append, debounce_window=10.0)
        await reconciler.start()

        await memory_store.write("currentState", record(10, NOW_MS))
        await settle()
        reconciler.close()
        reconciler.close()
        assert len(emitted) == 1

        await memory_store.write("currentState", record(99, NOW_MS + 1))
        await settle()
        assert len(emitted) == 1
        assert reconciler.status == ReconcilerStatus.CLOSED

    @pytest.mark.asyncio
    async def test_cannot_restart(self, memory_store):
        client = await self.connected_client(memory_store)
        reconciler = StreamReconciler(client, lambda _: None)
        await reconciler.start()
        with pytest.raises(RuntimeError):
            await reconciler.start()
        reconciler.close()

    @pytest.mark.asyncio
    async def test_context_manager(self, memory_store):
        client = await self.connected_client(memory_store)
        async with StreamReconciler(client, lambda _: None) as reconciler:
            assert reconciler.status == ReconcilerStatus.SUBSCRIBED
        assert reconciler.status == ReconcilerStatus.CLOSED

    @pytest.mark.asyncio
    async def test_watch(self, memory_store):
        """watch() yields merged views as they are emitted."""
        client = await self.connected_client(memory_store)
        await memory_store.write("currentState", record(12, NOW_MS))

        views = watch(client, debounce_window=0.01)
        view = await asyncio.wait_for(views.__anext__(), timeout=1.0)
        assert view[0].water_level == 12
        await views.aclose()
