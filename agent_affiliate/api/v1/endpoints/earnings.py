from fastapi import APIRouter, Query

from agent_affiliate.api.deps import Earnings
from agent_affiliate.schemas.base import ApiResponse
from agent_affiliate.schemas.reward import EarningsSummary

router = APIRouter(prefix="/earnings", tags=["Earnings"])


@router.get("", response_model=ApiResponse[EarningsSummary])
async def get_earnings(
    earnings: Earnings,
    wallet_address: str = Query(..., alias="walletAddress"),
):
    """
    Earnings summary for a wallet.

    totalEarnedUsdt counts COMMISSIONED and PAID rewards.
    """
    return ApiResponse(data=await earnings.get_earnings(wallet_address))
