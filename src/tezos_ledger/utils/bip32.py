"""BIP32 derivation path text <-> binary encoding.

Text form: ``("/" digits modifier?)+`` with an optional leading ``m``,
where the modifier ``h``, ``H`` or ``'`` marks a hardened index.

Binary form::

    +-------+----------------+----------------+-----+
    | Count | Index 0        | Index 1        | ... |
    | 1 B   | 4 bytes, BE    | 4 bytes, BE    |     |
    +-------+----------------+----------------+-----+

Hardened indices have bit 31 set.
"""

from __future__ import annotations

import struct

from ..errors import (
    InvalidChildIndexError,
    InvalidModifierError,
    InvalidPathError,
    InvalidPathLengthError,
)

HARDENED = 0x80000000
HARDENED_MARKERS = ("h", "H", "'")
MAX_DEPTH = 0xFF
DIGITS = "0123456789"

# SLIP-44 coin type 1729 (Tezos)
TEZOS_DEFAULT_PATH = "/44'/1729'/0'/0'"


def parse_path(path: str) -> list[int]:
    """Parse path text into 32-bit indices with the hardened bit applied.

    Raises:
        InvalidChildIndexError: If an index is ``>= 0x80000000``.
        InvalidModifierError: If a segment ends in anything but ``h H '``.
        InvalidPathError: If the text is otherwise malformed.
    """
    text = path[1:] if path.startswith("m/") else path
    if not text:
        raise InvalidPathError(f"Empty derivation path {path!r}")

    indices: list[int] = []
    pos = 0
    while pos < len(text):
        if text[pos] != "/":
            raise InvalidPathError(f"Expected '/' at position {pos} in {path!r}")
        pos += 1

        start = pos
        while pos < len(text) and text[pos] in DIGITS:
            pos += 1
        if pos == start:
            raise InvalidPathError(f"Missing index at position {start} in {path!r}")

        value = int(text[start:pos])
        if value >= HARDENED:
            raise InvalidChildIndexError(value)

        end = text.find("/", pos)
        if end == -1:
            end = len(text)
        modifier = text[pos:end]
        if modifier:
            if modifier not in HARDENED_MARKERS:
                raise InvalidModifierError(modifier)
            value += HARDENED
        pos = end

        indices.append(value)

    if len(indices) > MAX_DEPTH:
        raise InvalidPathError(f"Derivation path deeper than {MAX_DEPTH} levels")
    return indices


def encode_path(path: str) -> bytes:
    """Encode path text as ``count || index...``.

    >>> encode_path("/44'/1729'/0'/0'").hex()
    '048000002c800006c18000000080000000'
    """
    indices = parse_path(path)
    return bytes([len(indices)]) + b"".join(struct.pack(">I", i) for i in indices)


def decode_path(data: bytes) -> str:
    """Render an encoded path back to text, hardened indices marked ``'``.

    Raises:
        InvalidPathLengthError: If ``data`` is shorter than its count implies.
    """
    if not data:
        raise InvalidPathLengthError(0, 0)

    count = data[0]
    if len(data) < 1 + 4 * count:
        raise InvalidPathLengthError(count, len(data))

    segments = []
    for (value,) in struct.iter_unpack(">I", data[1 : 1 + 4 * count]):
        if value & HARDENED:
            segments.append(f"/{value - HARDENED}'")
        else:
            segments.append(f"/{value}")
    return "".join(segments)
