"""A command/response session over one exclusively owned transport."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from .config import TEZOS_CHANNEL
from .errors import TransportError
from .protocol.commands import Command
from .protocol.framing import PACKET_SIZE, REPORT_ID, wrap
from .protocol.reader import POLL_INTERVAL, READ_TIMEOUT, Reader
from .transport.base import Transport

logger = logging.getLogger(__name__)


class Session:
    """Serializes APDU round trips on a single device channel.

    The device cannot multiplex, so every write-then-read round trip runs
    under a session lock. Multi-step exchanges (the signing handshake)
    hold the lock across all their round trips with :meth:`exclusive`.

    Args:
        transport: Open transport, owned by this session from now on.
        channel: 2-byte channel identifier of the application.
        packet_size: HID packet size.
        read_timeout: Deadline in seconds for each response.
        poll_interval: Pause in seconds between empty reads.
        clock: Monotonic clock passed to the reader.
        sleep: Pause function passed to the reader.
    """

    def __init__(
        self,
        transport: Transport,
        channel: bytes = TEZOS_CHANNEL,
        packet_size: int = PACKET_SIZE,
        read_timeout: float = READ_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], object] | None = None,
    ) -> None:
        self._transport = transport
        self._channel = channel
        self._packet_size = packet_size
        self._lock = threading.RLock()
        self._depth = 0
        self._cancel = threading.Event()
        self._reader = Reader(
            transport,
            channel,
            packet_size=packet_size,
            timeout=read_timeout,
            poll_interval=poll_interval,
            clock=clock,
            sleep=sleep,
            cancel_event=self._cancel,
        )

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def channel(self) -> bytes:
        return self._channel

    def cancel(self) -> None:
        """Stop waiting for the response in flight.

        Bytes already sent to the device are not recalled; the current
        exclusive block fails with :class:`~tezos_ledger.errors.ReadCancelledError`.
        """
        self._cancel.set()

    @contextmanager
    def exclusive(self) -> Iterator[Session]:
        """Hold the session for a sequence of round trips."""
        with self._lock:
            if self._depth == 0:
                self._cancel.clear()
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1

    @contextmanager
    def blocking(self) -> Iterator[Session]:
        """Switch the transport to blocking reads for the enclosed block.

        Non-blocking mode is restored on every exit path.
        """
        with self.exclusive():
            self._transport.set_blocking(True)
            try:
                yield self
            finally:
                self._transport.set_blocking(False)

    def write(self, command: Command) -> int:
        """Frame a command and write its packets.

        Returns:
            Total number of bytes written, report ids included.

        Raises:
            TransportError: If the transport accepts no bytes.
        """
        apdu = command.to_bytes()
        logger.debug("APDU => %s", apdu.hex())

        written = 0
        with self.exclusive():
            for packet in wrap(self._channel, apdu, self._packet_size):
                logger.debug("HID => %s", packet.hex())
                count = self._transport.write(REPORT_ID + packet)
                if count is None or count <= 0:
                    raise TransportError(f"Failed to write: transport returned {count}")
                written += count
        return written

    def read(self) -> bytes:
        """Read one response payload (status word checked and stripped)."""
        with self.exclusive():
            return self._reader.read_response()

    def exchange(self, command: Command) -> bytes:
        """Send a command and return its response payload.

        Raises:
            TransportError, DeviceTimeoutError, FramingError, StatusError
        """
        with self.exclusive():
            self.write(command)
            return self._reader.read_response()
