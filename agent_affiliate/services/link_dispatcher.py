"""
Link Dispatcher

Picks the affiliate network adapter for a merchant and falls back exactly
once to the catalog backend's mediated tracking-link endpoint when the
direct path fails for any reason (missing credentials, API rejection,
timeout, unsupported network).
"""

import logging
from typing import Dict

from agent_affiliate.core.exceptions import (
    LinkGenerationFailed,
    NetworkAdapterError,
    UnsupportedNetwork,
)
from agent_affiliate.services.affiliate_network_service import (
    AffiliateNetwork,
    AffiliateNetworkAdapter,
)
from agent_affiliate.services.catalog_client import CatalogClient, Merchant

logger = logging.getLogger(__name__)


class LinkDispatcher:
    """Generates a tracking URL for (merchant, subId)."""

    def __init__(
        self,
        adapters: Dict[AffiliateNetwork, AffiliateNetworkAdapter],
        catalog: CatalogClient
    ):
        self.adapters = adapters
        self.catalog = catalog

    async def _generate_direct(self, merchant: Merchant, sub_id: str) -> str:
        adapter = self.adapters.get(merchant.network) if merchant.network else None
        if adapter is None:
            raise UnsupportedNetwork(
                f"Unsupported affiliate network: {merchant.third_party_type}",
                network=merchant.third_party_type,
            )
        return await adapter.generate_link(merchant.link_target(), sub_id)

    async def generate_link(self, merchant: Merchant, sub_id: str) -> str:
        try:
            return await self._generate_direct(merchant, sub_id)
        except NetworkAdapterError as e:
            logger.info(
                f"Direct link generation failed for merchant {merchant.id} "
                f"({type(e).__name__}: {e.message}); using catalog fallback"
            )
        except Exception:
            logger.exception(f"Unexpected error from {merchant.network} adapter; using catalog fallback")

        try:
            return await self.catalog.generate_tracking_link(merchant.id, sub_id)
        except Exception as e:
            logger.error(f"Fallback link generation failed for merchant {merchant.id}: {e}")
            raise LinkGenerationFailed(
                "Failed to generate tracking link",
                details={"merchant_id": merchant.id},
            ) from e
