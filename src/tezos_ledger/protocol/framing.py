"""Ledger HID transport framing.

An APDU (or its response) travels over fixed-size HID packets::

    First packet:
    +------------+-----------+-------------+-------------+---------------------+
    | Channel    | Tag 0x05  | Sequence    | Length      | Chunk               |
    | 2 bytes    | 1 byte    | 2 bytes, BE | 2 bytes, BE | packet_size - 7 B   |
    +------------+-----------+-------------+-------------+---------------------+

    Continuation packets:
    +------------+-----------+-------------+-----------------------------------+
    | Channel    | Tag 0x05  | Sequence    | Chunk                             |
    | 2 bytes    | 1 byte    | 2 bytes, BE | packet_size - 5 B                 |
    +------------+-----------+-------------+-----------------------------------+

- Sequence numbers restart at 0 for every logical frame.
- Length counts application bytes only (APDU, or response + status word).
- The last packet is zero-padded to the packet size.
"""

from __future__ import annotations

import struct

from ..errors import (
    ConfigError,
    InvalidChannelError,
    InvalidSequenceError,
    InvalidTagError,
    TruncatedFrameError,
)
from .status import check_status

PACKET_SIZE = 64
TAG_APDU = 0x05
REPORT_ID = b"\x00"

CHANNEL_SIZE = 2
CONT_HEADER_SIZE = 5    # channel(2) + tag(1) + sequence(2)
FIRST_HEADER_SIZE = 7   # continuation header + length(2)
MIN_RESPONSE_SIZE = 12  # first header + continuation header
STATUS_WORD_SIZE = 2
MAX_FRAME_LENGTH = 0xFFFF


class NeedMoreData(Exception):
    """Raised by :func:`unwrap` when the frame continues in a packet not yet read.

    This is a control-flow signal for the reader loop, not a failure.
    """


def _check_packet_size(packet_size: int) -> None:
    if packet_size < 3:
        raise ConfigError(f"Can't handle packets smaller than 3 bytes, got {packet_size}")


def wrap(channel: bytes, command: bytes, packet_size: int = PACKET_SIZE) -> list[bytes]:
    """Split an APDU into framed HID packets.

    Args:
        channel: 2-byte channel identifier.
        command: Serialized APDU bytes.
        packet_size: Size of each HID packet (without report id).

    Returns:
        A list of ``packet_size``-byte packets, in sequence order.

    Raises:
        ConfigError: If the packet size cannot carry the frame.
    """
    _check_packet_size(packet_size)
    if len(channel) != CHANNEL_SIZE:
        raise ConfigError(f"Channel must be {CHANNEL_SIZE} bytes, got {len(channel)}")
    if len(command) > MAX_FRAME_LENGTH:
        raise ConfigError(f"Command too long to frame: {len(command)} bytes")

    first_capacity = max(packet_size - FIRST_HEADER_SIZE, 0)
    cont_capacity = packet_size - CONT_HEADER_SIZE
    if len(command) > first_capacity and cont_capacity <= 0:
        raise ConfigError(
            f"Packet size {packet_size} leaves no room for continuation data"
        )

    sequence = 0
    buffer = bytearray(channel)
    buffer.append(TAG_APDU)
    buffer += struct.pack(">HH", sequence, len(command))
    buffer += command[:first_capacity]
    offset = first_capacity

    while offset < len(command):
        sequence += 1
        buffer += channel
        buffer.append(TAG_APDU)
        buffer += struct.pack(">H", sequence)
        buffer += command[offset : offset + cont_capacity]
        offset += cont_capacity

    if len(buffer) % packet_size:
        buffer += b"\x00" * (packet_size - len(buffer) % packet_size)

    return [
        bytes(buffer[i : i + packet_size])
        for i in range(0, len(buffer), packet_size)
    ]


def _check_header(channel: bytes, data: bytes, offset: int, sequence: int) -> None:
    packed_channel = bytes(data[offset : offset + CHANNEL_SIZE])
    if packed_channel != channel:
        raise InvalidChannelError(channel, packed_channel)

    tag = data[offset + 2]
    if tag != TAG_APDU:
        raise InvalidTagError(tag)

    (packed_sequence,) = struct.unpack_from(">H", data, offset + 3)
    if packed_sequence != sequence:
        raise InvalidSequenceError(sequence, packed_sequence)


def unwrap(channel: bytes, data: bytes, packet_size: int = PACKET_SIZE) -> bytes:
    """Reassemble a response frame and check its status word.

    Args:
        channel: Expected 2-byte channel identifier.
        data: Every packet read so far for this response, concatenated.
        packet_size: Size of each HID packet.

    Returns:
        The response payload with the trailing status word removed.

    Raises:
        NeedMoreData: If the frame continues in a packet not yet received.
        FramingError: On a truncated header, or a channel, tag or
            sequence mismatch in any packet.
        StatusError: If the device reported a failure status word.
    """
    _check_packet_size(packet_size)

    if len(data) < min(MIN_RESPONSE_SIZE, packet_size):
        raise TruncatedFrameError(f"No data: got {len(data)} bytes")
    if len(data) < FIRST_HEADER_SIZE:
        raise NeedMoreData()

    sequence = 0
    _check_header(channel, data, 0, sequence)
    (length,) = struct.unpack_from(">H", data, CONT_HEADER_SIZE)
    offset = FIRST_HEADER_SIZE

    block = min(length, max(packet_size - FIRST_HEADER_SIZE, 0))
    if len(data) < offset + block:
        raise NeedMoreData()
    result = bytearray(data[offset : offset + block])
    offset += block

    while len(result) < length:
        sequence += 1
        if len(data) < offset + CONT_HEADER_SIZE:
            raise NeedMoreData()
        _check_header(channel, data, offset, sequence)
        offset += CONT_HEADER_SIZE

        block = min(length - len(result), packet_size - CONT_HEADER_SIZE)
        if len(data) < offset + block:
            raise NeedMoreData()
        result += data[offset : offset + block]
        offset += block

    if length < STATUS_WORD_SIZE:
        raise TruncatedFrameError(
            f"Response of {length} bytes has no room for a status word"
        )

    (status_word,) = struct.unpack_from(">H", result, length - STATUS_WORD_SIZE)
    check_status(status_word)

    return bytes(result[:-STATUS_WORD_SIZE])
