"""USB HID connection to a Ledger device.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
The Ledger exposes its APDU channel as a HID interface (interface 0,
usage page 0xFFA0) with one interrupt IN and one interrupt OUT endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import LEDGER_INTERFACE, LEDGER_USAGE_PAGE, LEDGER_VENDOR_ID
from ..errors import TransportError
from ..protocol.framing import PACKET_SIZE, REPORT_ID

logger = logging.getLogger(__name__)

# Upper bound of a single blocking read, so the reader deadline still applies.
BLOCKING_READ_TIMEOUT_MS = 1000
NONBLOCKING_READ_TIMEOUT_MS = 1
WRITE_TIMEOUT_MS = 1000


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = LEDGER_VENDOR_ID
    product_id: int = 0
    manufacturer: str = ""
    product: str = ""
    serial: str = ""
    path: str = ""
    interface: int = LEDGER_INTERFACE
    usage_page: int = 0


class HIDTransport:
    """Manages the USB HID connection to the Ledger.

    Implements the :class:`~tezos_ledger.transport.base.Transport` contract.
    The device is opened in non-blocking mode.

    Usage::

        transport = HIDTransport()
        transport.open()
        transport.write(b"\\x00" + packet)
        count = transport.readinto(buffer)
        transport.close()
    """

    def __init__(
        self,
        vendor_id: int = LEDGER_VENDOR_ID,
        product_id: int = 0,
        interface: int = LEDGER_INTERFACE,
        usage_page: int = LEDGER_USAGE_PAGE,
        backend: str = "auto",
        packet_size: int = PACKET_SIZE,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._interface = interface
        self._usage_page = usage_page
        self._requested_backend = backend
        self._packet_size = packet_size
        self._device = None
        self._backend: str = ""
        self._ep_in = None
        self._ep_out = None
        self._blocking = False
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def blocking(self) -> bool:
        return self._blocking

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Open a connection to the Ledger, trying hidapi first, then pyusb.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            TransportError: If the device cannot be found or opened.
        """
        last_error: Exception | None = None
        if self._requested_backend in ("auto", "hidapi"):
            try:
                return self._open_hidapi()
            except Exception as e:
                logger.debug("hidapi backend failed: %s", e)
                last_error = e

        if self._requested_backend in ("auto", "pyusb"):
            try:
                return self._open_pyusb()
            except Exception as e:
                logger.debug("pyusb backend failed: %s", e)
                last_error = e

        raise TransportError(
            f"Could not connect to Ledger device "
            f"({self._vendor_id:#06x}:{self._product_id:#06x}). "
            f"Ledger plugged in? Unlocked? Tezos app open? "
            f"Last error: {last_error}"
        ) from last_error

    def _find_hid_path(self, hid) -> dict:
        for entry in hid.enumerate(self._vendor_id, self._product_id):
            logger.debug(
                "HID device %s %s path=%s interface=%s usage_page=%s",
                entry.get("manufacturer_string"),
                entry.get("product_string"),
                entry.get("path"),
                entry.get("interface_number"),
                entry.get("usage_page"),
            )
            if (
                entry.get("interface_number") == self._interface
                or entry.get("usage_page") == self._usage_page
            ):
                return entry
        raise ConnectionError("Device not found via hidapi")

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        entry = self._find_hid_path(hid)
        device = hid.device()
        device.open_path(entry["path"])
        try:
            device.set_nonblocking(True)
        except Exception:
            device.close()
            raise

        self._device = device
        self._backend = "hidapi"
        self._blocking = False
        self._connected = True

        path = entry["path"]
        self._device_info = DeviceInfo(
            vendor_id=entry.get("vendor_id", self._vendor_id),
            product_id=entry.get("product_id", self._product_id),
            manufacturer=entry.get("manufacturer_string") or "",
            product=entry.get("product_string") or "",
            serial=entry.get("serial_number") or "",
            path=path.decode() if isinstance(path, bytes) else str(path),
            interface=entry.get("interface_number", -1),
            usage_page=entry.get("usage_page", 0),
        )

        logger.info(
            "Connected via hidapi: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        find_kwargs = {"idVendor": self._vendor_id}
        if self._product_id:
            find_kwargs["idProduct"] = self._product_id
        dev = usb.core.find(**find_kwargs)
        if dev is None:
            raise ConnectionError("Device not found via pyusb")

        # Detach kernel driver if needed
        if dev.is_kernel_driver_active(self._interface):
            dev.detach_kernel_driver(self._interface)

        usb.util.claim_interface(dev, self._interface)

        intf = dev.get_active_configuration()[(self._interface, 0)]
        self._ep_in = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_IN,
        )
        self._ep_out = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_OUT,
        )
        if self._ep_in is None or self._ep_out is None:
            usb.util.release_interface(dev, self._interface)
            raise ConnectionError("HID endpoints not found via pyusb")

        self._device = dev
        self._backend = "pyusb"
        self._blocking = False
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=dev.idProduct,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
            interface=self._interface,
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, self._interface)
                usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._ep_in = None
            self._ep_out = None
            self._connected = False
            logger.info("Disconnected")

    def _require_connection(self) -> None:
        if not self._connected:
            raise TransportError("Not connected to device")

    def set_blocking(self, blocking: bool) -> None:
        """Switch between blocking and non-blocking reads.

        Raises:
            TransportError: If not connected or hidapi refuses the switch.
        """
        self._require_connection()
        if self._backend == "hidapi":
            if self._device.set_nonblocking(not blocking) == -1:
                raise TransportError("Could not set non-blocking mode")
        self._blocking = blocking
        logger.debug("Blocking reads %s", "enabled" if blocking else "disabled")

    def write(self, data: bytes) -> int:
        """Write one HID report (report id followed by a packet).

        Args:
            data: ``REPORT_ID`` followed by a framed packet.

        Returns:
            Number of bytes written.

        Raises:
            TransportError: If not connected or the write fails.
        """
        self._require_connection()

        report_size = len(REPORT_ID) + self._packet_size
        if len(data) != report_size:
            raise ValueError(f"HID report must be {report_size} bytes, got {len(data)}")

        try:
            if self._backend == "hidapi":
                written = self._device.write(data)
            elif self._backend == "pyusb":
                # Interrupt transfers carry no report id.
                written = self._ep_out.write(data[len(REPORT_ID):], timeout=WRITE_TIMEOUT_MS)
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except (OSError, ValueError) as e:
            raise TransportError(f"Failed to write: {e}") from e

        if written <= 0:
            raise TransportError(f"Failed to write: device returned {written}")
        return written

    def readinto(self, buffer: bytearray) -> int:
        """Read one HID report into ``buffer``.

        In non-blocking mode returns 0 immediately when nothing is pending.
        In blocking mode waits up to ``BLOCKING_READ_TIMEOUT_MS`` before
        returning 0, so callers keep control of the overall deadline.

        Returns:
            Number of bytes stored, 0 if none, -1 on a read failure.
        """
        self._require_connection()
        size = len(buffer)

        if self._backend == "hidapi":
            try:
                if self._blocking:
                    data = self._device.read(size, BLOCKING_READ_TIMEOUT_MS)
                else:
                    data = self._device.read(size)
            except (OSError, ValueError) as e:
                logger.debug("Read error: %s", e)
                return -1
        elif self._backend == "pyusb":
            import usb.core

            timeout = BLOCKING_READ_TIMEOUT_MS if self._blocking else NONBLOCKING_READ_TIMEOUT_MS
            try:
                data = self._ep_in.read(size, timeout=timeout)
            except usb.core.USBTimeoutError:
                return 0
            except usb.core.USBError as e:
                logger.debug("Read error: %s", e)
                return -1
        else:
            raise RuntimeError(f"Unknown backend: {self._backend}")

        count = len(data)
        buffer[:count] = bytes(data)
        return count
