"""Receive loop reassembling one response frame from HID packets."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from ..errors import DeviceTimeoutError, ReadCancelledError, TransportError
from ..transport.base import Transport
from .framing import PACKET_SIZE, NeedMoreData, unwrap

logger = logging.getLogger(__name__)

# On-device confirmation is human-timescale, so the deadline is generous.
READ_TIMEOUT = 50.0
POLL_INTERVAL = 0.1


class Reader:
    """Polls a transport until a complete response frame has been decoded.

    Usage::

        reader = Reader(transport, channel=b"\\x01\\x01")
        payload = reader.read_response()

    Args:
        transport: Open transport to read from.
        channel: Expected 2-byte channel identifier.
        packet_size: HID packet size.
        timeout: Overall deadline in seconds for one response.
        poll_interval: Pause in seconds after an empty read.
        clock: Monotonic clock, injectable for tests.
        sleep: Pause function, injectable for tests. Defaults to waiting on
            ``cancel_event`` so a cancellation wakes the loop immediately.
        cancel_event: Set from another thread to stop waiting.
    """

    def __init__(
        self,
        transport: Transport,
        channel: bytes,
        packet_size: int = PACKET_SIZE,
        timeout: float = READ_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], object] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._transport = transport
        self._channel = channel
        self._packet_size = packet_size
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._clock = clock
        self._cancel = cancel_event or threading.Event()
        self._sleep = sleep or self._cancel.wait

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    def _read_packet(self, deadline: float) -> bytes:
        """Read one non-empty packet, pausing between empty polls."""
        buffer = bytearray(self._packet_size)
        while True:
            if self._cancel.is_set():
                raise ReadCancelledError("Read cancelled")

            count = self._transport.readinto(buffer)
            if count is None:
                count = 0
            if count < 0:
                raise TransportError(f"Failed to read: transport returned {count}")
            if count > 0:
                return bytes(buffer[:count])

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise DeviceTimeoutError(
                    f"Timeout expired after {self._timeout:.1f}s waiting for device"
                )
            self._sleep(min(self._poll_interval, remaining))

    def read_response(self) -> bytes:
        """Read packets until one response frame decodes.

        Returns:
            The response payload without its status word.

        Raises:
            DeviceTimeoutError: If the deadline elapses first.
            ReadCancelledError: If ``cancel_event`` is set while waiting.
            TransportError: If the transport reports a read failure.
            FramingError: If the packets violate the framing protocol.
            StatusError: If the device reported a failure status.
        """
        deadline = self._clock() + self._timeout
        data = bytearray()

        while True:
            packet = self._read_packet(deadline)
            logger.debug("HID <= %s", packet.hex())
            data += packet
            try:
                payload = unwrap(self._channel, data, self._packet_size)
            except NeedMoreData:
                continue
            logger.debug("Response: %s (%d bytes)", payload.hex(), len(payload))
            return payload
