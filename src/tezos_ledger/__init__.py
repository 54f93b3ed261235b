"""Host-side client for the Tezos wallet and baking Ledger apps over USB HID."""

from .client import SignState, SigningHandshake, TezosLedger
from .config import LedgerConfig
from .errors import LedgerError
from .models.results import BakingSetup, PublicKey, SignResult
from .session import Session

__version__ = "0.1.0"

__all__ = [
    "TezosLedger",
    "SigningHandshake",
    "SignState",
    "Session",
    "LedgerConfig",
    "LedgerError",
    "PublicKey",
    "BakingSetup",
    "SignResult",
]
