"""Connection settings, with overrides from ``TEZOS_LEDGER_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping

from .errors import ConfigError
from .protocol.framing import PACKET_SIZE
from .protocol.reader import POLL_INTERVAL, READ_TIMEOUT

ENV_PREFIX = "TEZOS_LEDGER_"

LEDGER_VENDOR_ID = 0x2C97
LEDGER_USAGE_PAGE = 0xFFA0
LEDGER_INTERFACE = 0
TEZOS_CHANNEL = b"\x01\x01"

BACKENDS = ("auto", "hidapi", "pyusb")


def _parse_int(value: str) -> int:
    return int(value, 0)


def _parse_channel(value: str) -> bytes:
    channel = bytes.fromhex(value)
    if len(channel) != 2:
        raise ValueError("channel must be 2 bytes of hex")
    return channel


def _parse_optional_str(value: str) -> str | None:
    return value or None


_PARSERS = {
    "vendor_id": _parse_int,
    "product_id": _parse_int,
    "interface": _parse_int,
    "usage_page": _parse_int,
    "channel": _parse_channel,
    "packet_size": _parse_int,
    "read_timeout": float,
    "poll_interval": float,
    "backend": str.lower,
    "derivation_path": _parse_optional_str,
    "log_level": str.upper,
}


@dataclass(frozen=True)
class LedgerConfig:
    """Settings for discovering and talking to a Ledger running the Tezos app.

    ``product_id`` 0 matches any product from the vendor; the device is then
    selected by HID interface number or usage page.
    """

    vendor_id: int = LEDGER_VENDOR_ID
    product_id: int = 0
    interface: int = LEDGER_INTERFACE
    usage_page: int = LEDGER_USAGE_PAGE
    channel: bytes = TEZOS_CHANNEL
    packet_size: int = PACKET_SIZE
    read_timeout: float = READ_TIMEOUT
    poll_interval: float = POLL_INTERVAL
    backend: str = "auto"
    derivation_path: str | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.packet_size < 8:
            raise ConfigError(f"packet_size must be at least 8, got {self.packet_size}")
        if self.read_timeout <= 0:
            raise ConfigError(f"read_timeout must be positive, got {self.read_timeout}")
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.backend not in BACKENDS:
            raise ConfigError(f"backend must be one of {BACKENDS}, got {self.backend!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LedgerConfig:
        """Build a config from ``TEZOS_LEDGER_<FIELD>`` variables.

        Unset variables keep their defaults, e.g. ``TEZOS_LEDGER_BACKEND=pyusb``
        or ``TEZOS_LEDGER_DERIVATION_PATH=/44'/1729'/0'/0'``.

        Raises:
            ConfigError: If a variable cannot be parsed.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key not in environ:
                continue
            try:
                overrides[f.name] = _PARSERS[f.name](environ[key])
            except ValueError as e:
                raise ConfigError(f"Invalid {key}={environ[key]!r}: {e}") from e
        return cls(**overrides)
