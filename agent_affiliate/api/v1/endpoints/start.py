"""
Onboarding API Endpoint

Entry point for agents: explains that the wallet address is the identity
and lists the calls needed to start earning.
"""

from typing import Any, Dict

from fastapi import APIRouter

from agent_affiliate.config import settings
from agent_affiliate.schemas.base import ApiResponse

router = APIRouter(tags=["Onboarding"])


def onboarding_guide(api_prefix: str, token: str) -> Dict[str, Any]:
    return {
        "message": f"Welcome to {settings.APP_NAME}. Earn {token} commissions by sharing affiliate links.",
        "howItWorks": [
            "1. Provide your ERC-20 wallet address (this is your unique identifier, like an email for regular users)",
            f"2. Search for merchants with {token} cashback rates",
            "3. Generate an affiliate link tied to your wallet",
            "4. Share the short link with your users or on social media",
            f"5. Earn {token} when they make purchases, sent directly to your wallet",
        ],
        "required": {
            "walletAddress": {
                "description": f"Your ERC-20 wallet address: your agent ID and where {token} is sent",
                "important": "All links and earnings are tied to this address.",
                "format": "0x followed by 40 hexadecimal characters",
                "example": "0x1234567890abcdef1234567890abcdef12345678",
                "supportedNetworks": ["Ethereum", "Base", "Polygon", "Arbitrum"],
            },
        },
        "endpoints": {
            "getStarted": f"GET {api_prefix}/start",
            "searchMerchants": f"GET {api_prefix}/merchants?query=travel",
            "generateLink": f"POST {api_prefix}/links {{ walletAddress, merchantId }}",
            "getMyLinks": f"GET {api_prefix}/links?walletAddress=0x...",
            "checkLinkStatus": f"GET {api_prefix}/links/:id/status",
            "checkEarnings": f"GET {api_prefix}/earnings?walletAddress=0x...",
        },
        "noWallet": {
            "message": "If you don't have a wallet, create one using:",
            "options": [
                {"name": "MetaMask", "url": "https://metamask.io", "type": "browser extension"},
                {"name": "Rainbow", "url": "https://rainbow.me", "type": "mobile app"},
                {"name": "Coinbase Wallet", "url": "https://wallet.coinbase.com", "type": "mobile/browser"},
            ],
        },
    }


@router.get("/start", response_model=ApiResponse[Dict[str, Any]])
async def get_started():
    """Onboarding instructions for agents."""
    return ApiResponse(data=onboarding_guide(settings.API_PREFIX, settings.SETTLEMENT_TOKEN))
