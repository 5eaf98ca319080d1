"""
Attribution tokens (subIds).

A subId is embedded in every tracking URL and echoed back by network
postbacks. Format: agent_{wallet_fingerprint}_{random}_{timestamp}

- wallet_fingerprint: first 8 hex chars after 0x, lower-cased (diagnostics only)
- random: 10 base36 chars from `secrets`
- timestamp: milliseconds since epoch, base36

Generation is stateless. Postbacks are resolved through the AgentLink row
that stores the full subId, never through the fingerprint.
"""

import re
import secrets
import time
from typing import Optional

from agent_affiliate.core.exceptions import ValidationError

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
SUB_ID_PATTERN = re.compile(r"^agent_([a-f0-9]{8})_")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
RANDOM_PART_LENGTH = 10


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def is_valid_wallet_address(value: Optional[str]) -> bool:
    return isinstance(value, str) and WALLET_ADDRESS_PATTERN.fullmatch(value) is not None


def normalize_wallet_address(value: Optional[str]) -> str:
    """Validate an ERC-20 style address and return its canonical lower-case form."""
    if not is_valid_wallet_address(value):
        raise ValidationError("Invalid ERC-20 wallet address")
    return value.lower()


def generate_sub_id(wallet_address: str) -> str:
    """Generate a unique subId that encodes the wallet fingerprint."""
    wallet_prefix = wallet_address[2:10].lower()
    random_part = "".join(secrets.choice(_BASE36) for _ in range(RANDOM_PART_LENGTH))
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    return f"agent_{wallet_prefix}_{random_part}_{timestamp}"


def extract_wallet_prefix(sub_id: Optional[str]) -> Optional[str]:
    """Extract the wallet fingerprint from a subId, or None if it isn't one of ours."""
    if not sub_id:
        return None
    match = SUB_ID_PATTERN.match(sub_id)
    return match.group(1) if match else None
