"""Gateway relay: node lines in, telemetry records out to the cloud store."""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from floodwatch.shared.errors import LinkDown, PartialUploadFailure, ProtocolDecodeError, StoreError
from floodwatch.shared.levels import fill_percent, level_from_distance, status_from_level
from floodwatch.shared.logging import DiagnosticsBuffer
from floodwatch.shared.models import TelemetryRecord
from floodwatch.shared.protocol import (
    CurrentMessage,
    DecodedMessage,
    LegacyDistanceMessage,
    UnknownMessage,
    decode_line,
)
from floodwatch.shared.timestamps import TimestampCorrector, now_ms
from floodwatch.store.base import (
    CURRENT_STATE_PATH,
    CloudStore,
    history_path,
    minute_data_path,
    system_log_path,
)
from .config import GatewayConfig
from .lines import LineSource
from .links import LinkSupervisor

logger = logging.getLogger(__name__)


class UploadResult(Enum):
    """Outcome of one upload."""
    OK = "ok"
    PARTIAL = "partial"  # one of the two writes failed
    FAILED = "failed"  # both writes failed
    DROPPED = "dropped"  # a link was down, nothing written


class GatewayRelay:
    """Decodes node lines and uploads them while both links are up."""

    def __init__(
        self,
        config: GatewayConfig,
        source: LineSource,
        store: CloudStore,
        network: LinkSupervisor,
        store_link: LinkSupervisor,
        corrector: Optional[TimestampCorrector] = None,
        device_clock: Callable[[], int] = now_ms,
        diagnostics: Optional[DiagnosticsBuffer] = None,
    ):
        self.config = config
        self.source = source
        self.store = store
        self.network = network
        self.store_link = store_link
        self.corrector = corrector or TimestampCorrector()
        self.device_clock = device_clock
        self.diagnostics = diagnostics

        self._running = False
        self._pending_read: Optional[asyncio.Future] = None
        self.lines_read = 0
        self.lines_dropped = 0
        self.uploads = {result: 0 for result in UploadResult}

    def build_record(self, message: DecodedMessage) -> Optional[TelemetryRecord]:
        """Turn a decoded message into a record, None if it carries no measurement."""
        if isinstance(message, CurrentMessage):
            if message.value is None:
                return None
            if message.with_unit:
                # WATER:<n>cm:<status> reports the water height itself
                level = fill_percent(message.value, self.config.level_max_cm)
                distance = message.value
            else:
                level = message.value
                distance = message.secondary
            status = message.status
        elif isinstance(message, LegacyDistanceMessage):
            if message.distance is None:
                return None
            level = level_from_distance(message.distance, self.config.legacy_max_distance_cm)
            distance = message.distance
            status = None
        else:
            return None

        return TelemetryRecord(
            water_level=level,
            status=status or status_from_level(level),
            device_id=self.config.device_id,
            timestamp=self.corrector.correct(self.device_clock()),
            distance=distance,
        )

    def require_links(self) -> None:
        """Raise LinkDown naming the first link that is not connected."""
        for supervisor in (self.network, self.store_link):
            if not supervisor.is_connected:
                raise LinkDown(supervisor.name)

    async def upload(self, record: TelemetryRecord) -> UploadResult:
        """Write history/<ts> then currentState."""
        try:
            self.require_links()
        except LinkDown as e:
            logger.warning(f"{e}, dropping reading at {record.timestamp}")
            await self.network.ensure_connected()
            if self.network.is_connected:
                await self.store_link.ensure_connected()
            return UploadResult.DROPPED

        data = record.to_dict()
        written = []
        failed = []
        for path in (history_path(record.timestamp), CURRENT_STATE_PATH):
            try:
                await self.store.write(path, data)
                written.append(path)
            except StoreError as e:
                logger.error(f"Store write failed: {e}")
                failed.append(path)

        if not failed:
            logger.debug(f"Uploaded level={record.water_level} status={record.status}")
            await self.record_minute_data(record)
            await self.flush_diagnostics()
            return UploadResult.OK

        if written:
            logger.error(str(PartialUploadFailure(failed, written)))
            return UploadResult.PARTIAL

        self.store_link.mark_suspect()
        return UploadResult.FAILED

    async def record_minute_data(self, record: TelemetryRecord) -> None:
        """Best effort: overwrite this minute's chart sample."""
        if not self.config.record_minute_data:
            return

        data = record.to_dict()
        data.pop("distance", None)
        try:
            await self.store.write(minute_data_path(record.timestamp), data)
        except StoreError as e:
            logger.warning(f"Minute data write failed: {e}")

    async def flush_diagnostics(self) -> None:
        """Best effort: push buffered warnings/errors to systemLogs/<ts>."""
        if self.diagnostics is None or not len(self.diagnostics):
            return

        entries = self.diagnostics.drain()
        timestamp = self.corrector.correct(self.device_clock())
        try:
            await self.store.write(
                system_log_path(timestamp),
                {"deviceId": self.config.device_id, "entries": entries},
            )
        except StoreError as e:
            self.diagnostics.requeue(entries)
            logger.debug(f"Diagnostics upload failed: {e}")

    async def handle_line(self, line: str) -> Optional[UploadResult]:
        """Decode one line and upload its reading; never raises on bad input."""
        self.lines_read += 1
        try:
            message = decode_line(line)
        except ProtocolDecodeError as e:
            self.lines_dropped += 1
            logger.warning(f"Dropping line: {e}")
            return None

        if isinstance(message, UnknownMessage):
            logger.debug(f"Ignoring {message.tag!r} line: {message.raw}")
            return None

        record = self.build_record(message)
        if record is None:
            logger.debug("Node reported no measurement")
            return None

        result = await self.upload(record)
        self.uploads[result] += 1
        return result

    async def boot(self) -> None:
        """Bring up the network link, then the store session."""
        if await self.network.boot():
            await self.store_link.boot()
        else:
            logger.warning("Starting without network; will retry on incoming readings")

    async def run(self) -> None:
        """Run until stop() is called or the line source is exhausted."""
        self._running = True
        await self.boot()

        logger.info("Gateway relay is running")
        while self._running:
            try:
                await self.network.verify()
                if self.network.is_connected:
                    await self.store_link.verify()

                self._pending_read = asyncio.ensure_future(self.source.read_line())
                try:
                    line = await self._pending_read
                finally:
                    self._pending_read = None
                if line is None:
                    logger.info("Line source exhausted")
                    break
                if line:
                    await self.handle_line(line)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in relay loop: {e}")
                await asyncio.sleep(self.config.link.retry_delay)

        self._running = False
        logger.info(
            f"Relay stopped: {self.lines_read} lines, "
            f"{self.uploads[UploadResult.OK]} uploaded, "
            f"{self.uploads[UploadResult.DROPPED]} dropped"
        )

    def stop(self) -> None:
        """Stop the loop, interrupting a read that is waiting for the node."""
        self._running = False
        if self._pending_read is not None and not self._pending_read.done():
            self._pending_read.cancel()

    async def close(self) -> None:
        self.source.close()
        await self.store_link.close()
