"""Tests for the response receive loop."""

import threading

import pytest
from conftest import CHANNEL, FakeTransport, frame_response

from tezos_ledger.errors import (
    DeviceTimeoutError,
    InvalidSequenceError,
    ReadCancelledError,
    StatusError,
    TransportError,
)
from tezos_ledger.protocol.reader import Reader


def _reader(transport, clock, timeout=5.0, **kwargs):
    return Reader(
        transport,
        CHANNEL,
        timeout=timeout,
        poll_interval=0.1,
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


def _loaded(packets, empty_reads=0):
    """A transport with packets already pending, as after a write."""
    transport = FakeTransport([packets], empty_reads=empty_reads)
    transport.write(b"\x00" + CHANNEL + b"\x05\x00\x00" + bytes(59))
    return transport


def test_single_packet_response(clock):
    transport = _loaded(frame_response(b"\x01\x02\x02\x09"))
    assert _reader(transport, clock).read_response() == b"\x01\x02\x02\x09"
    assert clock.sleeps == []


def test_multi_packet_response(clock):
    """Packets are accumulated until the whole frame decodes."""
    payload = bytes(range(150))
    transport = _loaded(frame_response(payload))
    assert _reader(transport, clock).read_response() == payload


def test_empty_reads_back_off(clock):
    """Empty polls pause for the poll interval before retrying."""
    transport = _loaded(frame_response(b"\xAA"), empty_reads=3)
    assert _reader(transport, clock).read_response() == b"\xAA"
    assert clock.sleeps == [0.1, 0.1, 0.1]


def test_timeout(clock):
    """No data before the deadline fails with a timeout."""
    transport = FakeTransport()
    with pytest.raises(DeviceTimeoutError) as exc_info:
        _reader(transport, clock, timeout=1.0).read_response()
    assert exc_info.value.retryable
    assert clock.now == pytest.approx(1.0)


def test_negative_count_is_transport_error(clock):
    transport = FakeTransport()
    transport.readinto = lambda buffer: -1
    with pytest.raises(TransportError):
        _reader(transport, clock).read_response()


def test_cancel_stops_waiting(clock):
    cancel = threading.Event()
    cancel.set()
    transport = FakeTransport()
    with pytest.raises(ReadCancelledError):
        _reader(transport, clock, cancel_event=cancel).read_response()


def test_cancel_wakes_default_sleep():
    """Without an injected sleep, setting the event ends the wait early."""
    cancel = threading.Event()
    reader = Reader(FakeTransport(), CHANNEL, timeout=30.0, poll_interval=10.0, cancel_event=cancel)
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(ReadCancelledError):
            reader.read_response()
    finally:
        timer.cancel()


def test_framing_error_is_not_retried(clock):
    """A sequence error aborts immediately even though more packets follow."""
    packets = [bytearray(p) for p in frame_response(bytes(150))]
    packets[1][4] = 0x07
    transport = _loaded([bytes(p) for p in packets])
    with pytest.raises(InvalidSequenceError):
        _reader(transport, clock).read_response()


def test_status_error_propagates(clock):
    transport = _loaded(frame_response(status=0x6985))
    with pytest.raises(StatusError):
        _reader(transport, clock).read_response()
