"""Line sources for the physical link from the node."""

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterable, Iterator, Optional

import serial

logger = logging.getLogger(__name__)


class LineSource(ABC):
    """Yields raw protocol lines from the node."""

    @abstractmethod
    async def read_line(self) -> Optional[str]:
        """Read one line.

        Returns:
            The line without its terminator, "" when nothing arrived within
            the read timeout, or None once the source is exhausted.
        """
        pass

    def close(self) -> None:
        pass


class SerialLineSource(LineSource):
    """Reads lines from a serial port with pyserial."""

    def __init__(self, port: str, baud_rate: int = 9600, timeout: float = 1.0):
        self.port = port
        self.baud_rate = baud_rate
        self.timeout = timeout
        self._serial: Optional[serial.Serial] = None

    def open(self) -> None:
        self._serial = serial.Serial(self.port, self.baud_rate, timeout=self.timeout)
        logger.info(f"Opened serial port {self.port} at {self.baud_rate} baud")

    def _readline(self) -> str:
        if self._serial is None:
            self.open()
        raw = self._serial.readline()
        return raw.decode("ascii", errors="replace").strip()

    async def read_line(self) -> Optional[str]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._readline)
        except serial.SerialException as e:
            logger.error(f"Serial read failed on {self.port}: {e}")
            self.close()
            await asyncio.sleep(self.timeout)
            return ""

    def close(self) -> None:
        if self._serial is not None:
            try:
                self._serial.close()
            except serial.SerialException as e:
                logger.warning(f"Error closing {self.port}: {e}")
            self._serial = None


class StreamLineSource(LineSource):
    """Reads lines from a pipe or tty (stdin by default), or any iterable of lines.

    Pipes and ttys are read through an asyncio StreamReader, so a pending
    read can be cancelled without leaving an executor thread behind.
    Regular files cannot be registered with the event loop and are read in
    the default executor instead; they always reach EOF.
    """

    def __init__(self, lines: Optional[Iterable[str]] = None, stream: Optional[BinaryIO] = None):
        self._lines: Optional[Iterator[str]] = iter(lines) if lines is not None else None
        self._stream = stream
        self._reader: Optional[asyncio.StreamReader] = None
        self._transport: Optional[asyncio.ReadTransport] = None
        self._file: Optional[Iterator[bytes]] = None

    async def _open(self) -> None:
        stream = self._stream or sys.stdin.buffer
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        try:
            self._transport, _ = await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), stream
            )
            self._reader = reader
        except ValueError:
            logger.debug("Input is a regular file, reading it in the executor")
            self._file = iter(stream)

    def _next_from_file(self) -> bytes:
        return next(self._file, b"")

    async def read_line(self) -> Optional[str]:
        if self._lines is not None:
            try:
                return next(self._lines).rstrip("\r\n")
            except StopIteration:
                return None

        if self._reader is None and self._file is None:
            await self._open()

        try:
            if self._reader is not None:
                raw = await self._reader.readline()
            else:
                raw = await asyncio.get_running_loop().run_in_executor(None, self._next_from_file)
        except ValueError as e:
            logger.warning(f"Discarding oversized line: {e}")
            return ""

        if not raw:
            return None
        return raw.decode("ascii", errors="replace").rstrip("\r\n")

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
