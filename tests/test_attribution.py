"""
Tests for wallet validation and subId generation.
"""

from __future__ import annotations

import pytest

from agent_affiliate.core.attribution import (
    extract_wallet_prefix,
    generate_sub_id,
    is_valid_wallet_address,
    normalize_wallet_address,
)
from agent_affiliate.core.exceptions import ValidationError

WALLET = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"


@pytest.mark.parametrize("value", [
    "abc",
    "",
    None,
    "0x123",
    "AbCdEf0123456789abcdef0123456789ABCDEF0123",
    "0xZZCdEf0123456789abcdef0123456789ABCDEF01",
    WALLET + "\n",
    WALLET + "00",
])
def test_invalid_wallets(value):
    assert not is_valid_wallet_address(value)
    with pytest.raises(ValidationError) as exc:
        normalize_wallet_address(value)
    assert exc.value.status_code == 400
    assert exc.value.message == "Invalid ERC-20 wallet address"


def test_normalize_lowercases():
    assert normalize_wallet_address(WALLET) == WALLET.lower()


def test_sub_id_format():
    sub_id = generate_sub_id(WALLET)
    prefix, fingerprint, random_part, timestamp = sub_id.split("_")

    assert prefix == "agent"
    assert fingerprint == "abcdef01"
    assert len(random_part) == 10
    assert random_part.isalnum() and random_part == random_part.lower()
    assert timestamp.isalnum()
    assert extract_wallet_prefix(sub_id) == "abcdef01"


def test_sub_ids_are_unique():
    assert len({generate_sub_id(WALLET) for _ in range(500)}) == 500


@pytest.mark.parametrize("value", [None, "", "order_123", "agent_XYZ_abc_1"])
def test_extract_wallet_prefix_ignores_foreign_tokens(value):
    assert extract_wallet_prefix(value) is None
