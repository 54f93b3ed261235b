"""Tezos base58check version prefixes and signing watermarks.

Each prefix yields a fixed leading text once encoded, e.g. ``tz1`` for an
Ed25519 public key hash or ``edsig`` for an Ed25519 signature.
"""

from __future__ import annotations

from typing import Final

# Public key hashes (addresses)
TZ1: Final = bytes([6, 161, 159])       # Ed25519
TZ2: Final = bytes([6, 161, 161])       # Secp256k1
TZ3: Final = bytes([6, 161, 164])       # P256
KT1: Final = bytes([2, 90, 121])        # originated contract

# Keys
EDSK: Final = bytes([43, 246, 78, 7])   # 64-byte secret key
EDSK_SEED: Final = bytes([13, 15, 58, 7])
EDESK: Final = bytes([7, 90, 60, 179, 41])
EDPK: Final = bytes([13, 15, 37, 217])

# Signatures
EDSIG: Final = bytes([9, 245, 205, 134, 18])
SIG: Final = bytes([4, 130, 43])

# Chain data
BRANCH: Final = bytes([1, 52])
CHAIN_ID: Final = bytes([87, 82, 0])    # "Net..."

# Watermarks prepended to the bytes sent for signing
BLOCK_WATERMARK: Final = bytes([1])
ENDORSEMENT_WATERMARK: Final = bytes([2])
GENERIC_OPERATION_WATERMARK: Final = bytes([3])

PUBLIC_KEY_HASH_SIZE = 20
