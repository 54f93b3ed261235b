"""Duplex byte channel consumed by the session and reader."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Fixed-size packet channel to the device.

    ``readinto`` follows :meth:`io.RawIOBase.readinto`: it returns the
    number of bytes stored in ``buffer``, ``0`` (or ``None``) when no data
    is available yet in non-blocking mode, and a negative count on failure.
    """

    def write(self, data: bytes) -> int:
        ...

    def readinto(self, buffer: bytearray) -> int | None:
        ...

    def set_blocking(self, blocking: bool) -> None:
        ...
