"""Shared fixtures for floodwatch tests."""

import asyncio
from typing import List, Optional

import pytest

from floodwatch.node.sources.base import EchoSource
from floodwatch.store.memory import MemoryStore

# 2023-11-14T22:13:20Z
NOW_MS = 1700000000000


class FakeEchoSource(EchoSource):
    """Replays a fixed list of echo durations (None = timeout)."""

    def __init__(self, durations: List[Optional[int]], repeat_last: bool = True, healthy: bool = True):
        self.durations = list(durations)
        self.repeat_last = repeat_last
        self.healthy = healthy
        self.pings = 0

    def ping(self, timeout_us: int) -> Optional[int]:
        self.pings += 1
        if len(self.durations) > 1 or not self.repeat_last:
            return self.durations.pop(0)
        return self.durations[0]

    def check_health(self) -> bool:
        return self.healthy


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, now_ms: int = NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


async def settle(rounds: int = 3) -> None:
    """Let call_soon deliveries run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryStore()
