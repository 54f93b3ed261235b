"""Base58check encoding with Tezos version prefixes.

The encoded data is ``prefix || payload || checksum`` where the checksum
is the first 4 bytes of SHA-256(SHA-256(prefix || payload)).
"""

from __future__ import annotations

import hashlib

from ..errors import (
    ChecksumMismatchError,
    InvalidAlphabetError,
    InvalidLengthError,
    PrefixMismatchError,
)

B58_DIGITS: str = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
CHECKSUM_SIZE = 4

_B58_INDEX = {c: i for i, c in enumerate(B58_DIGITS)}


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    return sha256(sha256(data))


def b58encode(data: bytes) -> str:
    """Encode bytes to base58, keeping each leading zero byte as ``'1'``."""
    n = int.from_bytes(data, "big")

    digits: list[str] = []
    while n > 0:
        n, r = divmod(n, 58)
        digits.append(B58_DIGITS[r])

    pad = len(data) - len(data.lstrip(b"\x00"))
    return B58_DIGITS[0] * pad + "".join(reversed(digits))


def b58decode(text: str) -> bytes:
    """Decode base58 text, restoring a zero byte for each leading ``'1'``.

    Raises:
        InvalidAlphabetError: If a character is outside the alphabet.
    """
    n = 0
    for c in text:
        try:
            n = n * 58 + _B58_INDEX[c]
        except KeyError:
            raise InvalidAlphabetError(c) from None

    body = n.to_bytes((n.bit_length() + 7) // 8, "big")
    pad = len(text) - len(text.lstrip(B58_DIGITS[0]))
    return b"\x00" * pad + body


def encode(payload: bytes, prefix: bytes = b"") -> str:
    """Base58check-encode ``payload`` under a version prefix.

    >>> encode(bytes.fromhex("7a06a770"), bytes([87, 82, 0]))
    'NetXdQprcVkpaWU'
    """
    data = prefix + payload
    return b58encode(data + hash256(data)[:CHECKSUM_SIZE])


def decode(text: str, prefix: bytes = b"") -> bytes:
    """Decode base58check text and strip its version prefix.

    Raises:
        InvalidAlphabetError: If a character is outside the alphabet.
        InvalidLengthError: If the data is too short for checksum or prefix.
        ChecksumMismatchError: If the checksum does not verify.
        PrefixMismatchError: If the data does not start with ``prefix``.
    """
    raw = b58decode(text)
    if len(raw) < CHECKSUM_SIZE:
        raise InvalidLengthError(
            f"Invalid decode length: {len(raw)} bytes is too short for a checksum"
        )

    data, checksum = raw[:-CHECKSUM_SIZE], raw[-CHECKSUM_SIZE:]
    if hash256(data)[:CHECKSUM_SIZE] != checksum:
        raise ChecksumMismatchError()

    if len(data) < len(prefix):
        raise InvalidLengthError(
            f"Decoded data of {len(data)} bytes is shorter than its {len(prefix)}-byte prefix"
        )
    if data[: len(prefix)] != prefix:
        raise PrefixMismatchError(prefix, data[: len(prefix)])

    return data[len(prefix):]
