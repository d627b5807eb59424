"""Link supervision with bounded retries.

Each link (network, store session) is driven by its own LinkSupervisor:

    DISCONNECTED -> CONNECTING -> CONNECTED
         ^                            |
         +---- failed health check ---+

Every connect loop is capped at a fixed attempt count, so the relay loop
is only ever blocked for a bounded time.
"""

import asyncio
import logging
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from floodwatch.store.base import CloudStore
from .config import LinkConfig, NetworkConfig

logger = logging.getLogger(__name__)


class LinkState(Enum):
    """Connection states for a supervised link."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class ConnectivityCheck:
    """Result of a connectivity check."""
    target: str
    success: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


class Link(ABC):
    """Something the gateway needs to be connected to."""

    name: str = "link"

    @abstractmethod
    async def open(self) -> bool:
        """Make one connection attempt."""
        pass

    @abstractmethod
    async def check(self) -> bool:
        """Check that an open link still works."""
        pass

    async def close(self) -> None:
        pass


class PingNetworkLink(Link):
    """Network link judged by pinging a well-known host."""

    name = "network"

    def __init__(self, config: NetworkConfig):
        self.config = config
        self.last_check: Optional[ConnectivityCheck] = None

    def _ping(self, host: str, timeout: float = 2.0) -> ConnectivityCheck:
        """Ping a host and return connectivity check result."""
        try:
            start = time.time()
            result = subprocess.run(
                ["ping", "-c", "1", "-W", str(max(1, int(timeout))), host],
                capture_output=True,
                timeout=timeout + 1,
            )
            latency = (time.time() - start) * 1000

            if result.returncode == 0:
                return ConnectivityCheck(target=host, success=True, latency_ms=latency)
            return ConnectivityCheck(
                target=host,
                success=False,
                error=f"ping returned {result.returncode}",
            )
        except subprocess.TimeoutExpired:
            return ConnectivityCheck(target=host, success=False, error="timeout")
        except Exception as e:
            return ConnectivityCheck(target=host, success=False, error=str(e))

    def _run_reconnect_command(self) -> bool:
        command = self.config.reconnect_command
        if not command:
            return True
        try:
            result = subprocess.run(command, capture_output=True, timeout=15)
            success = result.returncode == 0
            logger.info(f"Reconnect command {'succeeded' if success else 'failed'}: {' '.join(command)}")
            return success
        except subprocess.TimeoutExpired:
            logger.error(f"Reconnect command timed out: {' '.join(command)}")
            return False
        except Exception as e:
            logger.error(f"Reconnect command failed: {e}")
            return False

    async def open(self) -> bool:
        self._run_reconnect_command()
        return await self.check()

    async def check(self) -> bool:
        self.last_check = self._ping(self.config.ping_host, self.config.ping_timeout)
        if self.last_check.success:
            logger.debug(f"Ping {self.config.ping_host}: {self.last_check.latency_ms:.0f} ms")
        else:
            logger.debug(f"Ping {self.config.ping_host} failed: {self.last_check.error}")
        return self.last_check.success


class StoreLink(Link):
    """Store session link."""

    name = "store"

    def __init__(self, store: CloudStore):
        self.store = store

    async def open(self) -> bool:
        return await self.store.connect()

    async def check(self) -> bool:
        return await self.store.ping()

    async def close(self) -> None:
        await self.store.close()


class LinkSupervisor:
    """Tracks one link's state and drives bounded (re)connects."""

    def __init__(
        self,
        link: Link,
        config: LinkConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.link = link
        self.config = config
        self._sleep = sleep
        self._clock = clock

        self.state = LinkState.DISCONNECTED
        self.last_check_at: Optional[float] = None
        self.total_attempts = 0
        self.state_changed_at = clock()

    @property
    def name(self) -> str:
        return self.link.name

    @property
    def is_connected(self) -> bool:
        return self.state == LinkState.CONNECTED

    def _set_state(self, state: LinkState) -> None:
        if state != self.state:
            logger.info(f"{self.name} link: {self.state.value} -> {state.value}")
            self.state = state
            self.state_changed_at = self._clock()

    async def connect(self, max_attempts: int) -> bool:
        """Try to connect up to max_attempts times with a fixed delay.

        Returns:
            True if connected; otherwise the link is left DISCONNECTED.
        """
        self._set_state(LinkState.CONNECTING)

        for attempt in range(1, max_attempts + 1):
            self.total_attempts += 1
            try:
                ok = await self.link.open()
            except Exception as e:
                logger.error(f"{self.name} connect attempt {attempt} raised: {e}")
                ok = False

            if ok:
                self.last_check_at = self._clock()
                self._set_state(LinkState.CONNECTED)
                return True

            logger.debug(f"{self.name} connect attempt {attempt}/{max_attempts} failed")
            if attempt < max_attempts:
                await self._sleep(self.config.retry_delay)

        self._set_state(LinkState.DISCONNECTED)
        logger.warning(f"{self.name} link still down after {max_attempts} attempts")
        return False

    async def boot(self) -> bool:
        return await self.connect(self.config.boot_attempts)

    async def ensure_connected(self) -> bool:
        """Reconnect with the smaller bound unless already connected."""
        if self.is_connected:
            return True
        return await self.connect(self.config.reconnect_attempts)

    def mark_suspect(self) -> None:
        """Force a health check on the next verify()."""
        self.last_check_at = None

    async def verify(self) -> bool:
        """Re-check a connected link once health_interval has passed.

        On failure the link drops to DISCONNECTED and a bounded reconnect
        is attempted immediately.
        """
        if not self.is_connected:
            return False

        now = self._clock()
        if self.last_check_at is not None and now - self.last_check_at < self.config.health_interval:
            return True

        self.last_check_at = now
        try:
            healthy = await self.link.check()
        except Exception as e:
            logger.error(f"{self.name} health check raised: {e}")
            healthy = False

        if healthy:
            return True

        logger.warning(f"{self.name} link failed health check")
        self._set_state(LinkState.DISCONNECTED)
        return await self.connect(self.config.reconnect_attempts)

    async def close(self) -> None:
        try:
            await self.link.close()
        except Exception as e:
            logger.error(f"Error closing {self.name} link: {e}")
        self._set_state(LinkState.DISCONNECTED)
