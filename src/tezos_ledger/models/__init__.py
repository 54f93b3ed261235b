"""Data models for version prefixes and device responses."""

from .results import BakingSetup, PublicKey, SignResult
