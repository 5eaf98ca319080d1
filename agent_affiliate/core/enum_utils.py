"""
Enum Utilities for VARCHAR-based Status Fields

ARCHITECTURE STANDARD:
━━━━━━━━━━━━━━━━━━━━━━
• Database: VARCHAR(20) - NOT PostgreSQL ENUM
• SQLAlchemy: String(20) with Mapped[str]
• Python: str-Enum for validation and comparison
• API Response: Use string directly (NO .value needed)
• Case: Reward statuses stored in UPPERCASE, network types in lowercase

DATA FLOW:
━━━━━━━━━━
INPUT (vendor postback):
    "Approved" → map_vendor_status() → RewardStatus.COMMISSIONED → "COMMISSIONED"

OUTPUT (API Response):
    Database → String → Return directly
    Example: VARCHAR "PAID" → "PAID" (no conversion needed)
"""

from enum import Enum
from typing import Any, Optional, TypeVar, Type


T = TypeVar('T', bound=Enum)


def get_enum_value(value: Any) -> str:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(RewardStatus.PAID)
        'PAID'
        >>> get_enum_value("PAID")  # Database value
        'PAID'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a string value to an enum instance.

    Examples:
        >>> to_enum("impact", AffiliateNetwork)
        AffiliateNetwork.IMPACT
        >>> to_enum("INVALID", AffiliateNetwork)
        None
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except (ValueError, KeyError):
        return None


def enum_values(enum_class: Type[Enum]) -> list:
    """
    Get all values from an enum class.

    Examples:
        >>> enum_values(RewardStatus)
        ['NOT_TRACKED', 'PENDING', 'COMMISSIONED', 'PAID', 'CANCELLED']
    """
    return [e.value for e in enum_class]


def enum_comment(enum_class: Type[Enum]) -> str:
    """
    Generate a comment string for VARCHAR column.

    Examples:
        >>> enum_comment(RewardStatus)
        'NOT_TRACKED, PENDING, COMMISSIONED, PAID, CANCELLED'
    """
    return ", ".join(enum_values(enum_class))


def status_in(db_value: str, *enum_members: Enum) -> bool:
    """
    Check if database value matches any of the given enums.

    Examples:
        >>> status_in(reward.status, RewardStatus.COMMISSIONED, RewardStatus.PAID)
        True
    """
    if db_value is None:
        return False
    return db_value in [e.value for e in enum_members]


def normalize_token(value: Any) -> Optional[str]:
    """Trim and lower-case a free-form vendor string; None for blanks and non-strings."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value or None


