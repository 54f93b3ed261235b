"""Encoding helpers: base58check and BIP32 derivation paths."""
