from fastapi import APIRouter

from agent_affiliate.api.v1.endpoints import (
    # Agent onboarding
    start,
    # Merchant catalog (proxy)
    merchants,
    # Links
    links,
    # Ledger
    earnings,
    postbacks,
    # Short link redirect
    short_links,
)
from agent_affiliate.config import settings


api_router = APIRouter(prefix=settings.API_PREFIX)

# ==================== Onboarding ====================
api_router.include_router(start.router)

# ==================== Merchants ====================
api_router.include_router(merchants.router)

# ==================== Links ====================
api_router.include_router(links.router)

# ==================== Earnings ====================
api_router.include_router(earnings.router)

# ==================== Webhooks ====================
api_router.include_router(postbacks.router)


# Served from the root so short URLs stay short
redirect_router = APIRouter()
redirect_router.include_router(short_links.router)
