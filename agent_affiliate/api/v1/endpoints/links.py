"""
Link API Endpoints

- POST /links: issue a tracking link (agent is created on first use)
- GET /links: all links for a wallet, with click and reward counts
- GET /links/{id}/status: one link with its rewards
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Query

from agent_affiliate.api.deps import Earnings, Links
from agent_affiliate.config import settings
from agent_affiliate.schemas.base import ApiResponse
from agent_affiliate.schemas.link import (
    CreateLinkRequest,
    LinkCreatedResponse,
    LinkListResponse,
    LinkStatusResponse,
)
from agent_affiliate.services.link_service import format_cashback_rate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/links", tags=["Links"])


@router.post("", response_model=ApiResponse[LinkCreatedResponse])
async def create_link(data: CreateLinkRequest, links: Links):
    """
    Generate an affiliate link tied to the agent's wallet.

    Returns the short URL to share and the underlying affiliate link.
    """
    link = await links.create_link(data.wallet_address, data.merchant_id)
    return ApiResponse(data=LinkCreatedResponse(
        link_id=link.id,
        merchant_name=link.merchant_name,
        cashback_rate=format_cashback_rate(link.cashback_rate, settings.SETTLEMENT_TOKEN),
        tracking_short_url=links.short_codes.build_short_url(link.short_code),
        affiliate_link=link.tracking_url,
        wallet_address=data.wallet_address.lower(),
        sub_id=link.sub_id,
        short_code=link.short_code,
    ))


@router.get("", response_model=ApiResponse[LinkListResponse])
async def list_links(
    earnings: Earnings,
    wallet_address: str = Query(..., alias="walletAddress"),
):
    """All links issued to a wallet, newest first."""
    return ApiResponse(data=await earnings.list_links(wallet_address))


@router.get("/{link_id}/status", response_model=ApiResponse[LinkStatusResponse])
async def get_link_status(link_id: UUID, earnings: Earnings):
    """Link details with every reward recorded against it."""
    return ApiResponse(data=await earnings.get_link_status(link_id))
