"""Exception hierarchy for the Ledger client.

Every error carries a ``retryable`` flag so callers can tell a call worth
repeating (a timeout, a user who declined on the device) from one that
leaves the session unusable (framing desync, a dead transport).
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors raised by this package."""

    retryable: bool = False


class ConfigError(LedgerError, ValueError):
    """Invalid configuration value (packet size, env var, missing path)."""


# ─── TRANSPORT ────────────────────────────────────────────────────────

class TransportError(LedgerError):
    """The underlying HID channel failed (write error, negative read count)."""


class DeviceTimeoutError(LedgerError, TimeoutError):
    """No complete response arrived before the read deadline."""

    retryable = True


class ReadCancelledError(DeviceTimeoutError):
    """The caller cancelled the wait for a response."""


# ─── FRAMING ──────────────────────────────────────────────────────────

class FramingError(LedgerError):
    """Response packets do not follow the framing protocol."""


class TruncatedFrameError(FramingError):
    """Not enough bytes to hold a frame header and status word."""


class InvalidChannelError(FramingError):
    def __init__(self, expected: bytes, actual: bytes) -> None:
        super().__init__(
            f"Invalid channel: expected {expected.hex()}, got {actual.hex()}"
        )
        self.expected = expected
        self.actual = actual


class InvalidTagError(FramingError):
    def __init__(self, tag: int) -> None:
        super().__init__(f"Invalid tag 0x{tag:02x}")
        self.tag = tag


class InvalidSequenceError(FramingError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Invalid sequence: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


# ─── DEVICE STATUS ────────────────────────────────────────────────────

class StatusError(LedgerError):
    """The device answered with a non-success status word.

    Attributes:
        code: The raw 16-bit status word.
        reason: Human-readable description of the failure category.
    """

    def __init__(self, code: int, reason: str, retryable: bool = False) -> None:
        super().__init__(f"{reason} (0x{code:04x})")
        self.code = code
        self.reason = reason
        self.retryable = retryable


class UnknownStatusError(StatusError):
    def __init__(self, code: int) -> None:
        super().__init__(code, f"Unknown status 0x{code:04x}")


# ─── RESPONSE PAYLOAD ─────────────────────────────────────────────────

class ResponseError(LedgerError):
    """A response payload does not have the expected layout."""


class LengthMismatchError(ResponseError):
    def __init__(self, declared: int, actual: int) -> None:
        super().__init__(
            f"Returned data length mismatch: declared {declared}, got {actual}"
        )
        self.declared = declared
        self.actual = actual


class ZeroLengthError(ResponseError):
    def __init__(self) -> None:
        super().__init__("Returned no data")


class DecodeLengthError(ResponseError):
    """The response is too short to decode its fields."""


class KeyMarkerError(ResponseError):
    """The byte preceding the key material is not the expected marker."""


# ─── ENCODING ─────────────────────────────────────────────────────────

class EncodingError(LedgerError, ValueError):
    """Malformed base58check text or derivation path."""


class InvalidAlphabetError(EncodingError):
    def __init__(self, char: str) -> None:
        super().__init__(f"Character {char!r} is not a valid base58 character")
        self.char = char


class ChecksumMismatchError(EncodingError):
    def __init__(self) -> None:
        super().__init__("Data and checksum don't match")


class InvalidLengthError(EncodingError):
    """Decoded data is too short for its checksum or prefix."""


class PrefixMismatchError(EncodingError):
    def __init__(self, expected: bytes, actual: bytes) -> None:
        super().__init__(
            f"Unexpected prefix: expected {expected.hex()}, got {actual.hex()}"
        )
        self.expected = expected
        self.actual = actual


class InvalidPathError(EncodingError):
    """Derivation path text does not follow ``("/" digits modifier?)+``."""


class InvalidChildIndexError(InvalidPathError):
    def __init__(self, index: int) -> None:
        super().__init__(f"Invalid child index {index}")
        self.index = index


class InvalidModifierError(InvalidPathError):
    def __init__(self, modifier: str) -> None:
        super().__init__(f"Invalid modifier {modifier!r}")
        self.modifier = modifier


class InvalidPathLengthError(EncodingError):
    def __init__(self, count: int, available: int) -> None:
        super().__init__(
            f"Invalid BIP32 path length: {count} elements need "
            f"{1 + 4 * count} bytes, got {available}"
        )
        self.count = count
        self.available = available
