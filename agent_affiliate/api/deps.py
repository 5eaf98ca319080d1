from typing import Annotated, Dict

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agent_affiliate.config import settings
from agent_affiliate.database import get_db
from agent_affiliate.services.affiliate_network_service import (
    AffiliateNetwork,
    AffiliateNetworkAdapter,
    NetworkCredentials,
    build_network_adapters,
)
from agent_affiliate.services.catalog_client import CatalogClient
from agent_affiliate.services.earnings_service import EarningsService
from agent_affiliate.services.link_dispatcher import LinkDispatcher
from agent_affiliate.services.link_service import LinkService
from agent_affiliate.services.payout_service import HttpPayoutRequester, PayoutRequester
from agent_affiliate.services.reward_service import RewardService
from agent_affiliate.services.short_code_service import ShortCodeService


# ==================== Outbound collaborators ====================

def get_catalog() -> CatalogClient:
    """Merchant catalog client built from settings."""
    return CatalogClient(
        base_url=settings.CATALOG_BASE_URL,
        api_key=settings.CATALOG_API_KEY,
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        settlement_token=settings.SETTLEMENT_TOKEN,
    )


def get_network_adapters() -> Dict[AffiliateNetwork, AffiliateNetworkAdapter]:
    return build_network_adapters(
        NetworkCredentials.from_settings(settings),
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
    )


def get_payouts() -> PayoutRequester:
    return HttpPayoutRequester(
        url=settings.PAYOUT_SERVICE_URL,
        api_key=settings.PAYOUT_API_KEY,
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        token=settings.SETTLEMENT_TOKEN,
    )


DB = Annotated[AsyncSession, Depends(get_db)]
Catalog = Annotated[CatalogClient, Depends(get_catalog)]
Adapters = Annotated[Dict[AffiliateNetwork, AffiliateNetworkAdapter], Depends(get_network_adapters)]
Payouts = Annotated[PayoutRequester, Depends(get_payouts)]


def get_dispatcher(adapters: Adapters, catalog: Catalog) -> LinkDispatcher:
    return LinkDispatcher(adapters, catalog)


Dispatcher = Annotated[LinkDispatcher, Depends(get_dispatcher)]


# ==================== Services ====================

def get_short_codes(db: DB) -> ShortCodeService:
    return ShortCodeService(
        db,
        base_url=settings.SHORT_URL_BASE,
        length=settings.SHORT_CODE_LENGTH,
        max_attempts=settings.SHORT_CODE_MAX_ATTEMPTS,
    )


ShortCodes = Annotated[ShortCodeService, Depends(get_short_codes)]


def get_link_service(
    db: DB,
    catalog: Catalog,
    dispatcher: Dispatcher,
    short_codes: ShortCodes,
) -> LinkService:
    return LinkService(db, catalog, dispatcher, short_codes)


def get_reward_service(db: DB, payouts: Payouts) -> RewardService:
    return RewardService(db, payouts, max_retries=settings.REWARD_MERGE_MAX_RETRIES)


def get_earnings_service(db: DB) -> EarningsService:
    return EarningsService(db, short_url_base=settings.SHORT_URL_BASE, token=settings.SETTLEMENT_TOKEN)


Links = Annotated[LinkService, Depends(get_link_service)]
Rewards = Annotated[RewardService, Depends(get_reward_service)]
Earnings = Annotated[EarningsService, Depends(get_earnings_service)]
