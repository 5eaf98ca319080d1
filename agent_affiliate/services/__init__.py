# Services module
from agent_affiliate.services.link_service import LinkService
from agent_affiliate.services.reward_service import RewardService
from agent_affiliate.services.earnings_service import EarningsService
from agent_affiliate.services.short_code_service import ShortCodeService
from agent_affiliate.services.link_dispatcher import LinkDispatcher
from agent_affiliate.services.catalog_client import CatalogClient
from agent_affiliate.services.payout_service import HttpPayoutRequester

__all__ = [
    "LinkService",
    "RewardService",
    "EarningsService",
    "ShortCodeService",
    # Outbound collaborators
    "LinkDispatcher",
    "CatalogClient",
    "HttpPayoutRequester",
]
