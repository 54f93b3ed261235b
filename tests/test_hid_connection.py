"""Tests for the HID transport with the hidapi module mocked out."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from tezos_ledger.errors import TransportError
from tezos_ledger.transport import Transport
from tezos_ledger.transport.hid_connection import (
    BLOCKING_READ_TIMEOUT_MS,
    HIDTransport,
)

LEDGER_ENTRY = {
    "path": b"/dev/hidraw3",
    "vendor_id": 0x2C97,
    "product_id": 0x1011,
    "manufacturer_string": "Ledger",
    "product_string": "Nano S Plus",
    "serial_number": "0001",
    "interface_number": 0,
    "usage_page": 0xFFA0,
}


def _fake_hid(entries=(LEDGER_ENTRY,)):
    hid = MagicMock()
    hid.enumerate.return_value = list(entries)
    device = MagicMock()
    device.set_nonblocking.return_value = 0
    hid.device.return_value = device
    return hid, device


def _open(hid):
    transport = HIDTransport(backend="hidapi")
    with patch.dict(sys.modules, {"hid": hid}):
        transport.open()
    return transport


def test_satisfies_transport_protocol():
    assert isinstance(HIDTransport(), Transport)


def test_open_selects_interface_zero():
    other = dict(LEDGER_ENTRY, path=b"/dev/hidraw2", interface_number=1, usage_page=0xF1D0)
    hid, device = _fake_hid([other, LEDGER_ENTRY])
    transport = _open(hid)

    hid.enumerate.assert_called_once_with(0x2C97, 0)
    device.open_path.assert_called_once_with(b"/dev/hidraw3")
    device.set_nonblocking.assert_called_once_with(True)
    assert transport.connected
    assert transport.backend == "hidapi"
    assert transport.device_info.product == "Nano S Plus"
    assert transport.device_info.path == "/dev/hidraw3"


def test_open_falls_back_to_usage_page():
    entry = dict(LEDGER_ENTRY, interface_number=-1)
    hid, device = _fake_hid([entry])
    _open(hid)
    device.open_path.assert_called_once_with(entry["path"])


def test_open_no_device():
    hid, _ = _fake_hid([])
    transport = HIDTransport(backend="hidapi")
    with patch.dict(sys.modules, {"hid": hid}):
        with pytest.raises(TransportError, match="Tezos app open"):
            transport.open()
    assert not transport.connected


def test_write_requires_connection():
    with pytest.raises(TransportError):
        HIDTransport().write(bytes(65))


def test_write_checks_report_size():
    hid, _ = _fake_hid()
    transport = _open(hid)
    with pytest.raises(ValueError):
        transport.write(bytes(64))


def test_write_passes_report_through():
    hid, device = _fake_hid()
    device.write.return_value = 65
    transport = _open(hid)
    report = b"\x00" + bytes(64)
    assert transport.write(report) == 65
    device.write.assert_called_once_with(report)


def test_write_failure():
    hid, device = _fake_hid()
    device.write.return_value = -1
    transport = _open(hid)
    with pytest.raises(TransportError):
        transport.write(bytes(65))


def test_readinto_nonblocking():
    hid, device = _fake_hid()
    device.read.return_value = [1, 2, 3]
    transport = _open(hid)

    buffer = bytearray(64)
    assert transport.readinto(buffer) == 3
    assert buffer[:3] == b"\x01\x02\x03"
    device.read.assert_called_once_with(64)


def test_readinto_empty():
    hid, device = _fake_hid()
    device.read.return_value = []
    transport = _open(hid)
    assert transport.readinto(bytearray(64)) == 0


def test_readinto_error_is_negative():
    hid, device = _fake_hid()
    device.read.side_effect = OSError("read error")
    transport = _open(hid)
    assert transport.readinto(bytearray(64)) == -1


def test_blocking_reads_use_timeout():
    hid, device = _fake_hid()
    device.read.return_value = []
    transport = _open(hid)

    transport.set_blocking(True)
    device.set_nonblocking.assert_called_with(False)
    transport.readinto(bytearray(64))
    device.read.assert_called_with(64, BLOCKING_READ_TIMEOUT_MS)

    transport.set_blocking(False)
    device.set_nonblocking.assert_called_with(True)
    assert not transport.blocking


def test_set_blocking_failure():
    hid, device = _fake_hid()
    transport = _open(hid)
    device.set_nonblocking.return_value = -1
    with pytest.raises(TransportError):
        transport.set_blocking(True)


def test_close_swallows_device_errors():
    hid, device = _fake_hid()
    device.close.side_effect = OSError("gone")
    transport = _open(hid)
    transport.close()
    assert not transport.connected
    transport.close()


def test_open_closes_handle_when_mode_switch_fails():
    hid, device = _fake_hid()
    device.set_nonblocking.side_effect = OSError("not supported")
    transport = HIDTransport(backend="hidapi")
    with patch.dict(sys.modules, {"hid": hid}):
        with pytest.raises(TransportError):
            transport.open()
    device.close.assert_called_once()
    assert not transport.connected
