"""APDU instruction constants and command builders for the Tezos app.

Every command shares the same serialized header::

    +------+-----+----+----+----+-----------------+
    | CLA  | INS | P1 | P2 | Lc | Payload         |
    | 0x80 | 1 B | 1B | 1B | 1B | Lc bytes (<=255)|
    +------+-----+----+----+----+-----------------+
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

CLA = 0x80
MAX_PAYLOAD_SIZE = 0xFF
MAX_LEVEL = 0xFFFFFFFF


def _check_level(name: str, level: int) -> None:
    if not 0 <= level <= MAX_LEVEL:
        raise ValueError(f"{name} must be 0-{MAX_LEVEL}, got {level}")


class Instruction(IntEnum):
    """Tezos wallet/baking app instruction codes."""

    VERSION = 0x00
    AUTHORIZE_BAKING = 0x01
    GET_PUBLIC_KEY = 0x02
    PROMPT_PUBLIC_KEY = 0x03
    SIGN = 0x04
    SIGN_UNSAFE = 0x05
    RESET_HWM = 0x06
    QUERY_AUTH_KEY = 0x07
    QUERY_MAIN_HWM = 0x08
    GIT_COMMIT = 0x09
    SETUP_BAKING = 0x0A
    QUERY_ALL_HWM = 0x0B
    DEAUTHORIZE_BAKING = 0x0C
    QUERY_AUTH_KEY_WITH_CURVE = 0x0D
    HMAC = 0x0E
    SIGN_WITH_HASH = 0x0F


class SignFlag(IntEnum):
    """P1 values sequencing a multi-APDU signing request."""

    FIRST = 0x00
    NEXT = 0x01
    LAST = 0x81


class DerivationType(IntEnum):
    """P2 values selecting the signing curve."""

    ED25519 = 0x00
    SECP256K1 = 0x01
    SECP256R1 = 0x02
    BIP32_ED25519 = 0x03


@dataclass(frozen=True)
class Command:
    """A single APDU for the Tezos app."""

    instruction: Instruction
    p1: int = 0x00
    p2: int = DerivationType.ED25519
    payload: bytes = b""

    def to_bytes(self) -> bytes:
        """Serialize as ``CLA | INS | P1 | P2 | Lc | payload``.

        Raises:
            ValueError: If the payload does not fit the 1-byte length field.
        """
        if len(self.payload) > MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"APDU payload must be at most {MAX_PAYLOAD_SIZE} bytes, "
                f"got {len(self.payload)}"
            )
        return bytes([CLA, self.instruction, self.p1, self.p2, len(self.payload)]) + self.payload

    def __repr__(self) -> str:
        return (
            f"Command({self.instruction.name}, p1=0x{self.p1:02X}, p2=0x{self.p2:02X}, "
            f"payload={self.payload.hex() if self.payload else '(empty)'})"
        )


def build_get_version() -> Command:
    return Command(Instruction.VERSION)


def build_get_commit_hash() -> Command:
    return Command(Instruction.GIT_COMMIT)


def build_get_public_key(path: bytes, prompt: bool = False) -> Command:
    """Build a public key request for an encoded derivation path.

    Args:
        path: Binary BIP32 path from :func:`tezos_ledger.utils.bip32.encode_path`.
        prompt: Ask the user to confirm the key on the device screen.
    """
    instruction = Instruction.PROMPT_PUBLIC_KEY if prompt else Instruction.GET_PUBLIC_KEY
    return Command(instruction, payload=path)


def build_authorize_baking(path: bytes) -> Command:
    return Command(Instruction.AUTHORIZE_BAKING, payload=path)


def build_deauthorize_baking() -> Command:
    return Command(Instruction.DEAUTHORIZE_BAKING)


def build_setup_baking(
    chain_id: bytes, main_hwm: int, test_hwm: int, path: bytes
) -> Command:
    """Build a baking setup request.

    Payload: ``chain_id(4) | main_hwm(4, BE) | test_hwm(4, BE) | path``.
    """
    if len(chain_id) != 4:
        raise ValueError(f"Chain id must be 4 bytes, got {len(chain_id)}")
    _check_level("Main watermark", main_hwm)
    _check_level("Test watermark", test_hwm)
    payload = chain_id + struct.pack(">II", main_hwm, test_hwm) + path
    return Command(Instruction.SETUP_BAKING, payload=payload)


def build_reset_hwm(level: int) -> Command:
    _check_level("Level", level)
    return Command(Instruction.RESET_HWM, payload=struct.pack(">I", level))


def build_query_main_hwm() -> Command:
    return Command(Instruction.QUERY_MAIN_HWM)


def build_query_all_hwm() -> Command:
    return Command(Instruction.QUERY_ALL_HWM)


def build_query_auth_key() -> Command:
    return Command(Instruction.QUERY_AUTH_KEY)


def build_sign_path(path: bytes) -> Command:
    """First signing APDU: selects the key that will sign."""
    return Command(Instruction.SIGN, p1=SignFlag.FIRST, payload=path)


def build_sign_chunks(data: bytes) -> list[Command]:
    """Split the bytes to sign into continuation APDUs.

    All chunks but the last carry :attr:`SignFlag.NEXT`; the last carries
    :attr:`SignFlag.LAST`. Empty data yields a single empty LAST chunk.
    """
    chunks = [
        data[i : i + MAX_PAYLOAD_SIZE]
        for i in range(0, len(data), MAX_PAYLOAD_SIZE)
    ] or [b""]
    return [
        Command(
            Instruction.SIGN,
            p1=SignFlag.LAST if i == len(chunks) - 1 else SignFlag.NEXT,
            payload=chunk,
        )
        for i, chunk in enumerate(chunks)
    ]
