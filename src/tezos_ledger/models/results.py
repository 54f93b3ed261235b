"""Values decoded from device responses."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class PublicKey:
    """A public key (``edpk...``) and its hash (``tz1...``)."""

    public_key: str
    public_key_hash: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BakingSetup:
    """High watermarks and main chain id stored by the baking app."""

    main_hwm: int
    test_hwm: int
    chain_id: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SignResult:
    """Output of signing an operation.

    Attributes:
        signed_operation: Operation hex with the raw signature hex appended,
            ready for injection.
        signature: Raw signature as hex.
        encoded_signature: Base58check signature (``edsig...``).
    """

    signed_operation: str
    signature: str
    encoded_signature: str

    def to_dict(self) -> dict:
        return asdict(self)
