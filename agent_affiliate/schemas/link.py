from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from agent_affiliate.schemas.base import BaseCreateSchema, BaseResponseSchema
from agent_affiliate.schemas.reward import RewardDetail


class CreateLinkRequest(BaseCreateSchema):
    """Wallet format is checked by the service so the error text stays uniform."""
    wallet_address: str = Field(..., alias="walletAddress")
    merchant_id: str = Field(..., alias="merchantId", min_length=1, max_length=100)


class LinkCreatedResponse(BaseResponseSchema):
    link_id: UUID
    merchant_name: str
    cashback_rate: str
    tracking_short_url: str
    affiliate_link: str
    wallet_address: str
    sub_id: str
    short_code: str


class LinkSummary(BaseResponseSchema):
    id: UUID
    merchant_id: str
    merchant_name: str
    merchant_slug: str
    cashback_rate: str
    short_url: str
    tracking_url: str
    click_count: int = 0
    last_click_at: Optional[datetime] = None
    reward_count: int = 0
    total_earnings: float = 0
    created_at: datetime


class LinkListResponse(BaseResponseSchema):
    wallet_address: str
    links: List[LinkSummary] = []
    total: int = 0


class LinkStatusResponse(BaseResponseSchema):
    id: UUID
    wallet_address: str
    merchant_id: str
    merchant_name: str
    merchant_slug: str
    cashback_rate: str
    short_url: str
    tracking_url: str
    sub_id: str
    click_count: int = 0
    last_click_at: Optional[datetime] = None
    rewards: List[RewardDetail] = []
    created_at: datetime
