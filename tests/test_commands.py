"""Tests for APDU command builders."""

import pytest

from tezos_ledger.protocol.commands import (
    CLA,
    Command,
    Instruction,
    SignFlag,
    build_authorize_baking,
    build_get_public_key,
    build_get_version,
    build_reset_hwm,
    build_setup_baking,
    build_sign_chunks,
    build_sign_path,
)
from tezos_ledger.utils.bip32 import encode_path

PATH = encode_path("/44'/1729'/0'/0'")


def test_instruction_values():
    """Verify key instruction codes match the Tezos app."""
    assert Instruction.VERSION == 0x00
    assert Instruction.AUTHORIZE_BAKING == 0x01
    assert Instruction.GET_PUBLIC_KEY == 0x02
    assert Instruction.PROMPT_PUBLIC_KEY == 0x03
    assert Instruction.SIGN == 0x04
    assert Instruction.GIT_COMMIT == 0x09
    assert Instruction.SETUP_BAKING == 0x0A
    assert Instruction.DEAUTHORIZE_BAKING == 0x0C


def test_command_serialization():
    """Header is CLA, INS, P1, P2, Lc followed by the payload."""
    command = Command(Instruction.SIGN, p1=0x81, p2=0x00, payload=b"\xAA\xBB")
    assert command.to_bytes() == bytes([CLA, 0x04, 0x81, 0x00, 0x02, 0xAA, 0xBB])


def test_get_version_has_no_payload():
    assert build_get_version().to_bytes() == bytes([0x80, 0x00, 0x00, 0x00, 0x00])


def test_payload_too_long():
    with pytest.raises(ValueError):
        Command(Instruction.SIGN, payload=bytes(256)).to_bytes()


def test_max_payload_fits():
    data = Command(Instruction.SIGN, payload=bytes(255)).to_bytes()
    assert data[4] == 0xFF
    assert len(data) == 5 + 255


def test_get_public_key_prompt():
    assert build_get_public_key(PATH).instruction == Instruction.GET_PUBLIC_KEY
    command = build_get_public_key(PATH, prompt=True)
    assert command.instruction == Instruction.PROMPT_PUBLIC_KEY
    assert command.payload == PATH


def test_authorize_baking_carries_path():
    assert build_authorize_baking(PATH).payload == PATH


def test_setup_baking_payload():
    """Payload is chain id, main and test watermarks, then the path."""
    command = build_setup_baking(bytes.fromhex("7a06a770"), 100, 200, PATH)
    assert command.payload == (
        bytes.fromhex("7a06a770")
        + (100).to_bytes(4, "big")
        + (200).to_bytes(4, "big")
        + PATH
    )


def test_setup_baking_bad_chain_id():
    with pytest.raises(ValueError):
        build_setup_baking(b"\x00\x01", 0, 0, PATH)


def test_reset_hwm_bounds():
    assert build_reset_hwm(0x01020304).payload == b"\x01\x02\x03\x04"
    with pytest.raises(ValueError):
        build_reset_hwm(-1)
    with pytest.raises(ValueError):
        build_reset_hwm(1 << 32)


def test_sign_path_is_first():
    command = build_sign_path(PATH)
    assert command.instruction == Instruction.SIGN
    assert command.p1 == SignFlag.FIRST
    assert command.payload == PATH


def test_sign_chunks_single():
    (command,) = build_sign_chunks(b"\x03" + bytes(10))
    assert command.p1 == SignFlag.LAST
    assert command.payload == b"\x03" + bytes(10)


def test_sign_chunks_split():
    """Long data is split into 255-byte chunks, the last flagged LAST."""
    data = bytes(i & 0xFF for i in range(600))
    chunks = build_sign_chunks(data)
    assert [c.p1 for c in chunks] == [SignFlag.NEXT, SignFlag.NEXT, SignFlag.LAST]
    assert b"".join(c.payload for c in chunks) == data
    assert len(chunks[0].payload) == 255


def test_sign_chunks_empty():
    (command,) = build_sign_chunks(b"")
    assert command.p1 == SignFlag.LAST
    assert command.payload == b""


def test_command_repr():
    r = repr(build_sign_path(PATH))
    assert "SIGN" in r
