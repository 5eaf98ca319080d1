"""
Merchant API Endpoints

Read-through proxy over the merchant catalog. Only merchants that pay
cashback in the settlement token are listed.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from agent_affiliate.api.deps import Catalog
from agent_affiliate.config import settings
from agent_affiliate.core.exceptions import MerchantNotFound
from agent_affiliate.schemas.base import ApiResponse
from agent_affiliate.schemas.merchant import MerchantDetail, MerchantListResponse, MerchantSummary

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/merchants", tags=["Merchants"])


@router.get("", response_model=ApiResponse[MerchantListResponse])
async def search_merchants(
    catalog: Catalog,
    query: Optional[str] = Query(None, description="Free-text search"),
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100, alias="perPage"),
):
    """Search merchants with cashback in the settlement token."""
    result = await catalog.search_merchants(query=query, category=category, page=page, per_page=per_page)
    return ApiResponse(data=MerchantListResponse(
        merchants=[MerchantSummary.from_merchant(m, settings.SETTLEMENT_TOKEN) for m in result["merchants"]],
        total=result["total"],
        page=result["page"],
        per_page=result["per_page"],
    ))


@router.get("/{merchant_id}", response_model=ApiResponse[MerchantDetail])
async def get_merchant(merchant_id: str, catalog: Catalog):
    """Get a single merchant by id or slug."""
    merchant = await catalog.get_merchant(merchant_id)
    if merchant is None:
        raise MerchantNotFound(merchant_id)
    return ApiResponse(data=MerchantDetail.from_merchant(merchant, settings.SETTLEMENT_TOKEN))
