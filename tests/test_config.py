"""Tests for connection settings and environment overrides."""

import pytest

from tezos_ledger.config import (
    LEDGER_USAGE_PAGE,
    LEDGER_VENDOR_ID,
    TEZOS_CHANNEL,
    LedgerConfig,
)
from tezos_ledger.errors import ConfigError


def test_defaults():
    config = LedgerConfig()
    assert config.vendor_id == LEDGER_VENDOR_ID == 0x2C97
    assert config.product_id == 0
    assert config.usage_page == LEDGER_USAGE_PAGE
    assert config.channel == TEZOS_CHANNEL
    assert config.packet_size == 64
    assert config.backend == "auto"
    assert config.derivation_path is None


def test_from_env_empty_keeps_defaults():
    assert LedgerConfig.from_env({}) == LedgerConfig()


def test_from_env_overrides():
    config = LedgerConfig.from_env(
        {
            "TEZOS_LEDGER_PRODUCT_ID": "0x1011",
            "TEZOS_LEDGER_CHANNEL": "0202",
            "TEZOS_LEDGER_READ_TIMEOUT": "12.5",
            "TEZOS_LEDGER_BACKEND": "PyUSB",
            "TEZOS_LEDGER_DERIVATION_PATH": "/44'/1729'/1'/0'",
            "TEZOS_LEDGER_LOG_LEVEL": "debug",
            "UNRELATED": "x",
        }
    )
    assert config.product_id == 0x1011
    assert config.channel == b"\x02\x02"
    assert config.read_timeout == 12.5
    assert config.backend == "pyusb"
    assert config.derivation_path == "/44'/1729'/1'/0'"
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "key, value",
    [
        ("TEZOS_LEDGER_PACKET_SIZE", "big"),
        ("TEZOS_LEDGER_CHANNEL", "010101"),
        ("TEZOS_LEDGER_READ_TIMEOUT", "soon"),
    ],
)
def test_from_env_unparsable(key, value):
    with pytest.raises(ConfigError) as exc_info:
        LedgerConfig.from_env({key: value})
    assert key in str(exc_info.value)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"packet_size": 4},
        {"read_timeout": 0},
        {"poll_interval": -1},
        {"backend": "serial"},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ConfigError):
        LedgerConfig(**kwargs)


def test_config_error_is_value_error():
    with pytest.raises(ValueError):
        LedgerConfig(packet_size=0)
