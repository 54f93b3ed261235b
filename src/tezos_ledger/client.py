"""Tezos wallet and baking app client.

Usage::

    with TezosLedger.open() as ledger:
        ledger.set_derivation_path("/44'/1729'/0'/0'")
        print(ledger.get_version())          # "Baking 2.2.9"
        print(ledger.get_public_key())       # PublicKey(edpk..., tz1...)
        result = ledger.sign_transaction(operation_hex)
"""

from __future__ import annotations

import hashlib
import logging
import struct
from enum import Enum

from .config import LedgerConfig
from .errors import (
    ConfigError,
    DecodeLengthError,
    EncodingError,
    KeyMarkerError,
    LengthMismatchError,
    ZeroLengthError,
)
from .models import prefixes
from .models.results import BakingSetup, PublicKey, SignResult
from .protocol.commands import (
    build_authorize_baking,
    build_deauthorize_baking,
    build_get_commit_hash,
    build_get_public_key,
    build_get_version,
    build_query_all_hwm,
    build_query_auth_key,
    build_query_main_hwm,
    build_reset_hwm,
    build_setup_baking,
    build_sign_chunks,
    build_sign_path,
)
from .session import Session
from .utils import base58check, bip32

logger = logging.getLogger(__name__)

APP_BAKING = 1
# Marker byte the device places before Ed25519 key material.
KEY_MARKER = 0x02


class SignState(Enum):
    IDLE = "idle"
    PATH_SENT = "path_sent"
    AWAITING_USER_CONFIRMATION = "awaiting_user_confirmation"
    PAYLOAD_SENT = "payload_sent"
    COMPLETE = "complete"
    FAILED = "failed"


class SigningHandshake:
    """One two-phase signing exchange.

    1. Send the derivation path; the device acknowledges.
    2. Switch the channel to blocking reads and send the bytes to sign
       (several APDUs when longer than 255 bytes). The last response
       arrives once the user approves on the device and holds the raw
       signature.

    Any error moves the handshake to ``FAILED`` and propagates. The device
    is not rolled back; a new handshake must start from the beginning.
    """

    def __init__(self, session: Session, path: bytes) -> None:
        self._session = session
        self._path = path
        self.state = SignState.IDLE

    def _transition(self, state: SignState) -> None:
        logger.debug("Signing: %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, data: bytes) -> bytes:
        """Sign ``data`` and return the raw signature bytes."""
        if self.state is not SignState.IDLE:
            raise RuntimeError(f"Handshake already used (state {self.state.value})")

        chunks = build_sign_chunks(data)
        try:
            with self._session.exclusive():
                self._session.exchange(build_sign_path(self._path))
                self._transition(SignState.PATH_SENT)

                with self._session.blocking():
                    for chunk in chunks[:-1]:
                        self._session.exchange(chunk)
                    self._transition(SignState.AWAITING_USER_CONFIRMATION)
                    logger.info("Waiting for confirmation on the device")
                    signature = self._session.exchange(chunks[-1])
                self._transition(SignState.PAYLOAD_SENT)
        except Exception:
            self._transition(SignState.FAILED)
            raise

        if not signature:
            self._transition(SignState.FAILED)
            raise ZeroLengthError()

        self._transition(SignState.COMPLETE)
        return signature


def _check_length_prefix(response: bytes) -> bytes:
    """Validate a ``length || data`` response and return ``data``.

    Raises:
        DecodeLengthError: If there is no length byte.
        LengthMismatchError: If the declared length disagrees with the data.
        ZeroLengthError: If the device returned no data.
    """
    if not response:
        raise DecodeLengthError("Unable to decode length")

    declared = response[0]
    if declared != len(response) - 1:
        raise LengthMismatchError(declared, len(response) - 1)
    if declared == 0:
        raise ZeroLengthError()
    return response[1:]


def public_key_hash(key: bytes) -> str:
    """Return the ``tz1`` address of a raw Ed25519 public key."""
    digest = hashlib.blake2b(key, digest_size=prefixes.PUBLIC_KEY_HASH_SIZE).digest()
    return base58check.encode(digest, prefixes.TZ1)


def _parse_public_key(response: bytes) -> PublicKey:
    data = _check_length_prefix(response)
    if data[0] != KEY_MARKER:
        raise KeyMarkerError(
            f"Expected key marker 0x{KEY_MARKER:02x}, got 0x{data[0]:02x}"
        )
    key = data[1:]
    if not key:
        raise ZeroLengthError()
    return PublicKey(
        public_key=base58check.encode(key, prefixes.EDPK),
        public_key_hash=public_key_hash(key),
    )


class TezosLedger:
    """Client for the Tezos wallet and baking Ledger apps.

    Args:
        session: Session bound to the device.
        derivation_path: Optional BIP32 path text to select right away.
    """

    def __init__(self, session: Session, derivation_path: str | None = None) -> None:
        self._session = session
        self._path: bytes = b""
        if derivation_path:
            self.set_derivation_path(derivation_path)

    @classmethod
    def open(cls, config: LedgerConfig | None = None) -> TezosLedger:
        """Discover the Ledger over USB HID and open a session.

        Raises:
            TransportError: If no device can be opened.
        """
        from .transport.hid_connection import HIDTransport

        config = config or LedgerConfig()
        transport = HIDTransport(
            vendor_id=config.vendor_id,
            product_id=config.product_id,
            interface=config.interface,
            usage_page=config.usage_page,
            backend=config.backend,
            packet_size=config.packet_size,
        )
        transport.open()
        try:
            session = Session(
                transport,
                channel=config.channel,
                packet_size=config.packet_size,
                read_timeout=config.read_timeout,
                poll_interval=config.poll_interval,
            )
            return cls(session, derivation_path=config.derivation_path)
        except BaseException:
            transport.close()
            raise

    @property
    def session(self) -> Session:
        return self._session

    def close(self) -> None:
        """Close the underlying transport."""
        close = getattr(self._session.transport, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> TezosLedger:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ─── DERIVATION PATH ──────────────────────────────────────────────

    @property
    def derivation_path(self) -> str | None:
        return bip32.decode_path(self._path) if self._path else None

    def set_derivation_path(self, path: str) -> None:
        """Select the key used by key, baking and signing operations."""
        self._path = bip32.encode_path(path)

    def _require_path(self) -> bytes:
        if not self._path:
            raise ConfigError("No BIP32 path is set; use set_derivation_path()")
        return self._path

    # ─── APP INFO ─────────────────────────────────────────────────────

    def get_version(self) -> str:
        """Return the open app and its version, e.g. ``"Baking 2.2.9"``."""
        response = self._session.exchange(build_get_version())
        if len(response) < 4:
            raise DecodeLengthError(f"Version response too short: {len(response)} bytes")
        app = "Baking" if response[0] == APP_BAKING else "Wallet"
        return f"{app} {response[1]}.{response[2]}.{response[3]}"

    def get_commit_hash(self) -> str:
        """Return the git commit hash of the open app, e.g. ``"b28c2364"``."""
        response = self._session.exchange(build_get_commit_hash())
        return response.rstrip(b"\x00").decode("ascii", errors="replace")

    # ─── KEYS ─────────────────────────────────────────────────────────

    def get_public_key(self, prompt: bool = False) -> PublicKey:
        """Return the public key and address of the current derivation path.

        Args:
            prompt: Ask the user to confirm the key on the device.
        """
        response = self._session.exchange(
            build_get_public_key(self._require_path(), prompt=prompt)
        )
        return _parse_public_key(response)

    def get_public_key_with_prompt(self) -> PublicKey:
        return self.get_public_key(prompt=True)

    # ─── BAKING ───────────────────────────────────────────────────────

    def setup_baking(
        self, chain_id: str, main_hwm: int, test_hwm: int | None = None
    ) -> PublicKey:
        """Authorize the current path to bake on ``chain_id`` from a watermark.

        Args:
            chain_id: Base58 chain id, e.g. ``"NetXdQprcVkpaWU"``.
            main_hwm: High watermark level of the main chain.
            test_hwm: High watermark of the test chain, defaults to ``main_hwm``.

        Returns:
            The authorized public key and address.
        """
        chain_bytes = base58check.decode(chain_id, prefixes.CHAIN_ID)
        command = build_setup_baking(
            chain_bytes,
            main_hwm,
            main_hwm if test_hwm is None else test_hwm,
            self._require_path(),
        )
        return _parse_public_key(self._session.exchange(command))

    def authorize_baking(self) -> PublicKey:
        """Authorize the current path to sign blocks and endorsements."""
        response = self._session.exchange(build_authorize_baking(self._require_path()))
        return _parse_public_key(response)

    def deauthorize_baking(self) -> None:
        self._session.exchange(build_deauthorize_baking())

    def reset_high_watermark(self, level: int) -> None:
        """Reset all watermarks to ``level``. The user must confirm on the device."""
        self._session.exchange(build_reset_hwm(level))

    def get_high_watermark(self) -> int:
        """Return the main chain high watermark."""
        response = self._session.exchange(build_query_main_hwm())
        if len(response) < 4:
            raise DecodeLengthError(f"Not enough data returned: {len(response)} bytes")
        return struct.unpack_from(">I", response)[0]

    def get_baking_setup(self) -> BakingSetup:
        """Return main and test watermarks along with the main chain id."""
        response = self._session.exchange(build_query_all_hwm())
        if len(response) < 12:
            raise DecodeLengthError(f"Not enough data returned: {len(response)} bytes")
        main_hwm, test_hwm = struct.unpack_from(">II", response)
        return BakingSetup(
            main_hwm=main_hwm,
            test_hwm=test_hwm,
            chain_id=base58check.encode(response[8:12], prefixes.CHAIN_ID),
        )

    def get_authorized_key_path(self) -> str:
        """Return the derivation path of the key currently authorized to bake."""
        response = self._session.exchange(build_query_auth_key())
        return bip32.decode_path(response)

    # ─── SIGNING ──────────────────────────────────────────────────────

    def sign_raw(self, data: bytes) -> bytes:
        """Run the signing handshake and return the raw signature."""
        return SigningHandshake(self._session, self._require_path()).run(data)

    def sign_bytes(self, data: bytes) -> str:
        """Sign ``data`` (watermark included) and return an ``edsig...`` string."""
        return base58check.encode(self.sign_raw(data), prefixes.EDSIG)

    def _sign_operation(
        self, watermark: bytes, operation_hex: str, chain_id: str | None = None
    ) -> SignResult:
        try:
            operation = bytes.fromhex(operation_hex)
        except ValueError as e:
            raise EncodingError(f"Operation is not valid hex: {e}") from e

        data = watermark
        if chain_id:
            data += base58check.decode(chain_id, prefixes.CHAIN_ID)
        data += operation

        signature = self.sign_raw(data)
        logger.info("Signed %d bytes", len(data))
        return SignResult(
            signed_operation=operation_hex + signature.hex(),
            signature=signature.hex(),
            encoded_signature=base58check.encode(signature, prefixes.EDSIG),
        )

    def sign_block(self, block_hex: str, chain_id: str) -> SignResult:
        return self._sign_operation(prefixes.BLOCK_WATERMARK, block_hex, chain_id)

    def sign_endorsement(self, endorsement_hex: str, chain_id: str) -> SignResult:
        return self._sign_operation(prefixes.ENDORSEMENT_WATERMARK, endorsement_hex, chain_id)

    def sign_nonce(self, nonce_hex: str, chain_id: str) -> SignResult:
        return self._sign_operation(prefixes.GENERIC_OPERATION_WATERMARK, nonce_hex, chain_id)

    def sign_reveal(self, reveal_hex: str) -> SignResult:
        return self._sign_operation(prefixes.GENERIC_OPERATION_WATERMARK, reveal_hex)

    def sign_transaction(self, transaction_hex: str) -> SignResult:
        return self._sign_operation(prefixes.GENERIC_OPERATION_WATERMARK, transaction_hex)

    def sign_set_delegate(self, delegation_hex: str) -> SignResult:
        return self._sign_operation(prefixes.GENERIC_OPERATION_WATERMARK, delegation_hex)
