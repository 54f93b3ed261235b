"""MCP server entry point for the Tezos Ledger client.

Exposes the wallet and baking app operations as tools via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from mcp.server.fastmcp import FastMCP

from .client import TezosLedger
from .config import LedgerConfig
from .errors import LedgerError

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "tezos-ledger",
    instructions="Tezos wallet and baking operations on a Ledger device over USB HID",
)

# Global connection state
_ledger: TezosLedger | None = None

SIGNERS: dict[str, str] = {
    "block": "sign_block",
    "endorsement": "sign_endorsement",
    "nonce": "sign_nonce",
    "reveal": "sign_reveal",
    "transaction": "sign_transaction",
    "delegation": "sign_set_delegate",
}
CHAIN_BOUND_KINDS = ("block", "endorsement", "nonce")


def _get_ledger() -> TezosLedger:
    """Get the active Ledger client, raising if not connected."""
    if _ledger is None:
        raise RuntimeError("Not connected to device. Use the 'connect' tool first.")
    return _ledger


def _call(operation: Callable[[], Any]) -> Any:
    """Run a device operation, turning client errors into an error payload."""
    try:
        return operation()
    except LedgerError as e:
        logger.warning("Device operation failed: %s", e)
        return {"error": str(e), "retryable": e.retryable}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Establish a USB connection to the Ledger running the Tezos app.

    Discovers the device by vendor id 0x2C97 and HID interface, then asks
    the app for its version. Settings come from TEZOS_LEDGER_* variables.
    """
    global _ledger
    if _ledger is not None:
        return {"connected": True, "message": "Already connected"}

    def _open() -> dict[str, Any]:
        global _ledger
        ledger = TezosLedger.open(LedgerConfig.from_env())
        try:
            version = ledger.get_version()
        except BaseException:
            ledger.close()
            raise

        _ledger = ledger
        info = ledger.session.transport.device_info
        return {
            "connected": True,
            "manufacturer": info.manufacturer,
            "product": info.product,
            "version": version,
            "derivation_path": ledger.derivation_path,
        }

    return _call(_open)


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the Ledger."""
    global _ledger
    if _ledger is not None:
        _ledger.close()
        _ledger = None
    return {"disconnected": True}


# ─── APP INFO TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def get_version() -> dict[str, Any]:
    """Return the open app and its version, e.g. 'Baking 2.2.9'."""
    ledger = _get_ledger()
    return _call(lambda: {"version": ledger.get_version()})


@mcp.tool()
def get_commit_hash() -> dict[str, Any]:
    """Return the git commit hash of the open app."""
    ledger = _get_ledger()
    return _call(lambda: {"commit": ledger.get_commit_hash()})


# ─── KEY TOOLS ────────────────────────────────────────────────────────

@mcp.tool()
def set_derivation_path(path: str) -> dict[str, Any]:
    """Select the BIP32 key path used by key, baking and signing tools.

    Args:
        path: Path such as /44'/1729'/0'/0' (h, H or ' mark hardened indices).
    """
    ledger = _get_ledger()

    def _set() -> dict[str, Any]:
        ledger.set_derivation_path(path)
        return {"derivation_path": ledger.derivation_path}

    return _call(_set)


@mcp.tool()
def get_public_key(prompt: bool = False) -> dict[str, Any]:
    """Return the public key (edpk...) and address (tz1...) of the current path.

    Args:
        prompt: Ask the user to confirm the key on the device screen.
    """
    ledger = _get_ledger()
    return _call(lambda: ledger.get_public_key(prompt=prompt).to_dict())


# ─── BAKING TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def setup_baking(chain_id: str, main_hwm: int, test_hwm: int | None = None) -> dict[str, Any]:
    """Authorize the current path to bake on a chain, starting at a watermark.

    Args:
        chain_id: Base58 chain id, e.g. NetXdQprcVkpaWU.
        main_hwm: Main chain high watermark level.
        test_hwm: Test chain high watermark level (defaults to main_hwm).
    """
    if main_hwm < 0 or (test_hwm is not None and test_hwm < 0):
        return {"error": "Watermarks must be non-negative"}
    ledger = _get_ledger()
    return _call(lambda: ledger.setup_baking(chain_id, main_hwm, test_hwm).to_dict())


@mcp.tool()
def authorize_baking() -> dict[str, Any]:
    """Authorize the current path to sign blocks and endorsements."""
    ledger = _get_ledger()
    return _call(lambda: ledger.authorize_baking().to_dict())


@mcp.tool()
def deauthorize_baking() -> dict[str, Any]:
    """Remove the baking authorization from the device."""
    ledger = _get_ledger()

    def _deauthorize() -> dict[str, Any]:
        ledger.deauthorize_baking()
        return {"deauthorized": True}

    return _call(_deauthorize)


@mcp.tool()
def reset_high_watermark(level: int) -> dict[str, Any]:
    """Reset all high watermarks to a level. Requires confirmation on the device.

    Args:
        level: New watermark level.
    """
    if level < 0:
        return {"error": "Level must be non-negative"}
    ledger = _get_ledger()

    def _reset() -> dict[str, Any]:
        ledger.reset_high_watermark(level)
        return {"level": level}

    return _call(_reset)


@mcp.tool()
def get_baking_setup() -> dict[str, Any]:
    """Return main/test high watermarks and the main chain id."""
    ledger = _get_ledger()
    return _call(lambda: ledger.get_baking_setup().to_dict())


@mcp.tool()
def get_high_watermark() -> dict[str, Any]:
    """Return the main chain high watermark."""
    ledger = _get_ledger()
    return _call(lambda: {"main_hwm": ledger.get_high_watermark()})


@mcp.tool()
def get_authorized_key_path() -> dict[str, Any]:
    """Return the derivation path of the key authorized to bake."""
    ledger = _get_ledger()
    return _call(lambda: {"derivation_path": ledger.get_authorized_key_path()})


# ─── SIGNING TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def sign_operation(kind: str, operation_hex: str, chain_id: str | None = None) -> dict[str, Any]:
    """Sign a forged operation with the current derivation path.

    The user must approve on the device; this call waits for it.

    Args:
        kind: One of block, endorsement, nonce, reveal, transaction, delegation.
        operation_hex: Forged operation bytes as hex.
        chain_id: Base58 chain id, required for block, endorsement and nonce.
    """
    if kind not in SIGNERS:
        return {"error": f"Unknown operation kind '{kind}'. Valid: {list(SIGNERS)}"}
    if kind in CHAIN_BOUND_KINDS and not chain_id:
        return {"error": f"chain_id is required to sign a {kind}"}

    ledger = _get_ledger()
    signer = getattr(ledger, SIGNERS[kind])
    if kind in CHAIN_BOUND_KINDS:
        return _call(lambda: signer(operation_hex, chain_id).to_dict())
    return _call(lambda: signer(operation_hex).to_dict())


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("tezos://device/info")
def resource_device_info() -> str:
    """Device descriptors and connection state."""
    if _ledger is None:
        return json.dumps({"connected": False})

    info = _ledger.session.transport.device_info
    return json.dumps({
        "connected": True,
        "manufacturer": info.manufacturer,
        "product": info.product,
        "vendor_id": f"0x{info.vendor_id:04X}",
        "product_id": f"0x{info.product_id:04X}",
    })


@mcp.resource("tezos://device/status")
def resource_device_status() -> str:
    """Connection state and selected derivation path."""
    if _ledger is None:
        return json.dumps({"connected": False})
    return json.dumps({"connected": True, "derivation_path": _ledger.derivation_path})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=LedgerConfig.from_env().log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
