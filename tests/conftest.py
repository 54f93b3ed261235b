"""Shared fakes: a scripted HID device and a controllable clock."""

from __future__ import annotations

import struct
from collections import deque

import pytest

from tezos_ledger.protocol.framing import PACKET_SIZE, REPORT_ID, wrap
from tezos_ledger.session import Session

CHANNEL = b"\x01\x01"


def frame_response(
    payload: bytes = b"",
    status: int = 0x9000,
    channel: bytes = CHANNEL,
    packet_size: int = PACKET_SIZE,
) -> list[bytes]:
    """Frame a device response (payload + status word) into packets."""
    return wrap(channel, payload + struct.pack(">H", status), packet_size)


class FakeClock:
    """Monotonic clock that only advances when something sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransport:
    """Scripted device answering each APDU with the next queued response.

    Args:
        responses: One list of packets per expected APDU.
        empty_reads: Number of empty polls before each response's packets.
    """

    def __init__(self, responses=(), empty_reads: int = 0) -> None:
        self.responses = deque(responses)
        self.empty_reads = empty_reads
        self.reports: list[bytes] = []
        self.blocking_calls: list[bool] = []
        self.blocking = False
        self._pending: deque = deque()

    def write(self, data: bytes) -> int:
        self.reports.append(bytes(data))
        packet = data[len(REPORT_ID):]
        sequence = struct.unpack_from(">H", packet, 3)[0]
        if sequence == 0 and self.responses:
            self._pending.extend([None] * self.empty_reads)
            self._pending.extend(self.responses.popleft())
        return len(data)

    def readinto(self, buffer: bytearray) -> int:
        if not self._pending:
            return 0
        packet = self._pending.popleft()
        if packet is None:
            return 0
        buffer[: len(packet)] = packet
        return len(packet)

    def set_blocking(self, blocking: bool) -> None:
        self.blocking_calls.append(blocking)
        self.blocking = blocking

    def sent_apdus(self) -> list[tuple[int, int, int, bytes]]:
        """Reassemble written reports into ``(ins, p1, p2, payload)`` tuples."""
        apdus = []
        current = b""
        length = 0
        for report in self.reports:
            packet = report[len(REPORT_ID):]
            sequence = struct.unpack_from(">H", packet, 3)[0]
            if sequence == 0:
                length = struct.unpack_from(">H", packet, 5)[0]
                current = packet[7:]
            else:
                current += packet[5:]
            if len(current) >= length:
                apdu = current[:length]
                apdus.append((apdu[1], apdu[2], apdu[3], apdu[5 : 5 + apdu[4]]))
                current = b""
                length = 0
        return apdus


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_session(clock):
    """Build a session around a FakeTransport scripted with responses."""

    def _make(*responses, empty_reads: int = 0, read_timeout: float = 5.0):
        transport = FakeTransport(responses, empty_reads=empty_reads)
        session = Session(
            transport,
            channel=CHANNEL,
            read_timeout=read_timeout,
            clock=clock,
            sleep=clock.sleep,
        )
        return session, transport

    return _make
