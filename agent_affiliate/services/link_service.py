"""
Link Service

Issues tracking links to agents:
1. Validate and normalize the wallet address
2. Look up the merchant in the catalog (must have a settlement-token rate)
3. Generate a subId and a tracking URL (network adapter or fallback)
4. Find-or-create the agent for the wallet
5. Persist the link under a fresh short code
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agent_affiliate.core.attribution import generate_sub_id, normalize_wallet_address
from agent_affiliate.core.exceptions import MerchantNotFound, MerchantNotLinkable
from agent_affiliate.models.agent import Agent, AgentLink
from agent_affiliate.services.catalog_client import CatalogClient
from agent_affiliate.services.link_dispatcher import LinkDispatcher
from agent_affiliate.services.short_code_service import ShortCodeService

logger = logging.getLogger(__name__)


def format_cashback_rate(rate: Optional[Decimal], token: str = "USDT") -> str:
    """4.500000 -> '4.5% USDT'"""
    rate = Decimal(rate or 0).normalize()
    return f"{rate:f}% {token}"


async def get_agent_by_wallet(db: AsyncSession, wallet_address: str) -> Optional[Agent]:
    result = await db.execute(
        select(Agent).where(Agent.wallet_address == wallet_address)
    )
    return result.scalar_one_or_none()


class LinkService:
    """Creates agents lazily and issues their tracking links."""

    def __init__(
        self,
        db: AsyncSession,
        catalog: CatalogClient,
        dispatcher: LinkDispatcher,
        short_codes: ShortCodeService
    ):
        self.db = db
        self.catalog = catalog
        self.dispatcher = dispatcher
        self.short_codes = short_codes

    async def get_or_create_agent(self, wallet_address: str) -> Agent:
        """Find-or-create; a concurrent creator winning the unique index is re-read."""
        agent = await get_agent_by_wallet(self.db, wallet_address)
        if agent:
            return agent

        agent = Agent(wallet_address=wallet_address)
        try:
            async with self.db.begin_nested():
                self.db.add(agent)
        except IntegrityError:
            agent = await get_agent_by_wallet(self.db, wallet_address)
            if agent is None:
                raise
            return agent

        logger.info(f"Registered new agent {wallet_address[:10]}...")
        return agent

    async def create_link(self, wallet_address: str, merchant_id: str) -> AgentLink:
        wallet = normalize_wallet_address(wallet_address)

        merchant = await self.catalog.get_merchant(merchant_id)
        if merchant is None:
            raise MerchantNotFound(merchant_id)
        if not merchant.is_linkable:
            raise MerchantNotLinkable(
                f"No {self.catalog.settlement_token} cashback available for this merchant"
            )

        sub_id = generate_sub_id(wallet)
        tracking_url = await self.dispatcher.generate_link(merchant, sub_id)

        agent = await self.get_or_create_agent(wallet)
        agent_id = agent.id
        cashback_rate = merchant.settlement_rate.value

        link = await self.short_codes.assign(
            lambda code: AgentLink(
                agent_id=agent_id,
                merchant_id=merchant.id,
                merchant_name=merchant.name,
                merchant_slug=merchant.slug_id,
                cashback_rate=cashback_rate,
                sub_id=sub_id,
                tracking_url=tracking_url,
                short_code=code,
            )
        )
        logger.info(
            f"Issued link {link.short_code} for agent {wallet[:10]}... "
            f"merchant={merchant.slug_id} network={merchant.third_party_type}"
        )
        return link
