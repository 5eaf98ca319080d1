"""
Reward Status State Machine

Single source of truth for reward statuses:
- Vendor vocabulary → canonical status mapping
- Forward transition table
- Typed status history

Postbacks are applied in arrival order (the last one wins). The transition
table does not block anything; it only classifies a change as forward or
as a regression so ingestion can log it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from agent_affiliate.core.enum_utils import normalize_token
from agent_affiliate.models.agent import RewardStatus


# =============================================================================
# VENDOR VOCABULARY
# =============================================================================

VENDOR_STATUS_MAP: Dict[str, RewardStatus] = {
    "pending": RewardStatus.PENDING,
    "before_pending": RewardStatus.PENDING,
    "commissioned": RewardStatus.COMMISSIONED,
    "approved": RewardStatus.COMMISSIONED,
    "paid": RewardStatus.PAID,
    "success": RewardStatus.PAID,
    "cancelled": RewardStatus.CANCELLED,
    "reversed": RewardStatus.CANCELLED,
    "rejected": RewardStatus.CANCELLED,
}


def map_vendor_status(vendor_status: Any) -> RewardStatus:
    """Map a vendor status string (any case) to the canonical lifecycle."""
    return VENDOR_STATUS_MAP.get(normalize_token(vendor_status), RewardStatus.NOT_TRACKED)


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> [statuses reachable by moving forward]
REWARD_TRANSITIONS: Dict[RewardStatus, List[RewardStatus]] = {
    RewardStatus.NOT_TRACKED: [
        RewardStatus.PENDING,
        RewardStatus.COMMISSIONED,
        RewardStatus.PAID,
        RewardStatus.CANCELLED,
    ],
    RewardStatus.PENDING: [
        RewardStatus.COMMISSIONED,
        RewardStatus.PAID,
        RewardStatus.CANCELLED,
    ],
    RewardStatus.COMMISSIONED: [
        RewardStatus.PAID,
        RewardStatus.CANCELLED,
    ],
    RewardStatus.PAID: [],          # Terminal state
    RewardStatus.CANCELLED: [],     # Terminal state
}


def is_forward_transition(current_status: str, new_status: str) -> bool:
    """True for a no-op or a move forward through the lifecycle."""
    if current_status == new_status:
        return True
    try:
        current = RewardStatus(current_status)
    except ValueError:
        return True
    return RewardStatus(new_status) in REWARD_TRANSITIONS.get(current, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    try:
        return [s.value for s in REWARD_TRANSITIONS[RewardStatus(current_status)]]
    except (KeyError, ValueError):
        return []


# =============================================================================
# STATUS HISTORY
# =============================================================================

@dataclass(frozen=True)
class StatusHistoryEntry:
    at: datetime
    status: RewardStatus

    def to_dict(self) -> Dict[str, str]:
        return {"at": self.at.isoformat(), "status": self.status.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["StatusHistoryEntry"]:
        try:
            return cls(at=datetime.fromisoformat(data["at"]), status=RewardStatus(data["status"]))
        except (KeyError, TypeError, ValueError):
            return None


def parse_status_history(raw: Optional[Sequence[Dict[str, Any]]]) -> List[StatusHistoryEntry]:
    """Decode the JSON column, skipping entries that don't parse."""
    entries = (StatusHistoryEntry.from_dict(item) for item in raw or [])
    return [e for e in entries if e is not None]


def append_status(
    history: Optional[Sequence[Dict[str, Any]]],
    status: RewardStatus,
    at: Optional[datetime] = None
) -> List[Dict[str, str]]:
    """
    Return a new history list with one entry appended.

    Always returns a new list so the ORM sees the JSON column change.
    """
    entry = StatusHistoryEntry(at=at or datetime.now(timezone.utc), status=status)
    return [*(history or []), entry.to_dict()]
