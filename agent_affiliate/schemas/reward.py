from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from agent_affiliate.schemas.base import BaseCreateSchema, BaseResponseSchema

# Widths of agent_rewards.order_id and agent_rewards.postback_source
ORDER_ID_MAX_LENGTH = 255
SOURCE_MAX_LENGTH = 100


def _lenient_decimal(value: Any) -> Decimal:
    """Network payloads send numbers, numeric strings, blanks or junk. Junk is 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


class PostbackPayload(BaseCreateSchema):
    """
    Conversion postback from an affiliate network.

    Only subId is required; everything else degrades to a default.
    """
    sub_id: str = Field(..., alias="subId")
    order_id: Optional[str] = Field(None, alias="orderId")
    order_amount: Decimal = Field(Decimal("0"), alias="orderAmount")
    order_currency: str = Field("USD", alias="orderCurrency")
    commission_usdt: Decimal = Field(Decimal("0"), alias="commissionUsdt")
    status: Optional[str] = None
    source: Optional[str] = None

    @field_validator("sub_id", mode="before")
    @classmethod
    def require_sub_id(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("subId is required")
        return v.strip()

    @field_validator("order_id", mode="before")
    @classmethod
    def normalize_order_id(cls, v):
        if v is None or isinstance(v, (dict, list, bool)):
            return None
        v = str(v).strip()[:ORDER_ID_MAX_LENGTH]
        return v or None

    @field_validator("order_amount", "commission_usdt", mode="before")
    @classmethod
    def parse_amount(cls, v):
        return _lenient_decimal(v)

    @field_validator("order_currency", mode="before")
    @classmethod
    def default_currency(cls, v):
        if not isinstance(v, str) or not v.strip():
            return "USD"
        return v.strip().upper()[:10]

    @field_validator("status", "source", mode="before")
    @classmethod
    def text_or_none(cls, v):
        if v is None or isinstance(v, (dict, list)):
            return None
        return str(v)

    @field_validator("source")
    @classmethod
    def cap_source(cls, v):
        return v[:SOURCE_MAX_LENGTH] if v else v


class PostbackResult(BaseResponseSchema):
    reward_id: UUID
    status: str
    wallet_address: str
    payout_error: Optional[str] = None


class StatusHistoryItem(BaseResponseSchema):
    at: datetime
    status: str


class RewardDetail(BaseResponseSchema):
    id: UUID
    order_id: Optional[str] = None
    order_amount: float
    order_currency: str
    commission_usdt: float
    status: str
    status_history: List[StatusHistoryItem] = []
    tx_hash: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


class EarningsByStatus(BaseModel):
    """Keys stay snake_case (not_tracked, pending, ...)."""
    not_tracked: float = 0
    pending: float = 0
    commissioned: float = 0
    paid: float = 0
    cancelled: float = 0


class RecentTransaction(BaseResponseSchema):
    id: UUID
    order_id: Optional[str] = None
    amount: float
    status: str
    tx_hash: Optional[str] = None
    created_at: datetime


class EarningsSummary(BaseResponseSchema):
    wallet_address: str
    total_earned_usdt: float = 0
    by_status: EarningsByStatus = EarningsByStatus()
    total_links: int = 0
    recent_transactions: List[RecentTransaction] = []
