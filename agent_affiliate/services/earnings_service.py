"""
Earnings Service

Read side of the ledger: per-wallet link listings, single link status with
its rewards, and the earnings summary.

Earned = COMMISSIONED + PAID. PENDING and NOT_TRACKED are shown but not
counted; CANCELLED is shown for transparency.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agent_affiliate.core.attribution import normalize_wallet_address
from agent_affiliate.core.enum_utils import get_enum_value, status_in
from agent_affiliate.core.exceptions import LinkNotFound
from agent_affiliate.models.agent import AgentLink, AgentReward, RewardStatus
from agent_affiliate.schemas.link import LinkListResponse, LinkStatusResponse, LinkSummary
from agent_affiliate.schemas.reward import (
    EarningsByStatus,
    EarningsSummary,
    RecentTransaction,
    RewardDetail,
    StatusHistoryItem,
)
from agent_affiliate.services.link_service import format_cashback_rate, get_agent_by_wallet
from agent_affiliate.services.reward_state_machine import parse_status_history

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS_LIMIT = 10

EARNED_STATUSES = (RewardStatus.COMMISSIONED, RewardStatus.PAID)


def sum_earned(rewards: Iterable[AgentReward]) -> Decimal:
    return sum(
        (Decimal(r.commission_usdt or 0) for r in rewards if status_in(r.status, *EARNED_STATUSES)),
        Decimal("0"),
    )


def reward_detail(reward: AgentReward) -> RewardDetail:
    return RewardDetail(
        id=reward.id,
        order_id=reward.order_id,
        order_amount=float(reward.order_amount or 0),
        order_currency=reward.order_currency,
        commission_usdt=float(reward.commission_usdt or 0),
        status=reward.status,
        status_history=[
            StatusHistoryItem(at=entry.at, status=get_enum_value(entry.status))
            for entry in parse_status_history(reward.status_history)
        ],
        tx_hash=reward.tx_hash,
        paid_at=reward.paid_at,
        created_at=reward.created_at,
    )


class EarningsService:
    """Per-wallet views over links and rewards."""

    def __init__(self, db: AsyncSession, short_url_base: str, token: str = "USDT"):
        self.db = db
        self.short_url_base = short_url_base.rstrip("/")
        self.token = token

    def _short_url(self, code: str) -> str:
        return f"{self.short_url_base}/{code}"

    async def list_links(self, wallet_address: str) -> LinkListResponse:
        wallet = normalize_wallet_address(wallet_address)
        agent = await get_agent_by_wallet(self.db, wallet)
        if agent is None:
            return LinkListResponse(wallet_address=wallet)

        result = await self.db.execute(
            select(AgentLink)
            .options(selectinload(AgentLink.rewards))
            .where(AgentLink.agent_id == agent.id)
            .order_by(AgentLink.created_at.desc())
        )
        links = result.scalars().all()

        items = [
            LinkSummary(
                id=link.id,
                merchant_id=link.merchant_id,
                merchant_name=link.merchant_name,
                merchant_slug=link.merchant_slug,
                cashback_rate=format_cashback_rate(link.cashback_rate, self.token),
                short_url=self._short_url(link.short_code),
                tracking_url=link.tracking_url,
                click_count=link.click_count,
                last_click_at=link.last_click_at,
                reward_count=len(link.rewards),
                total_earnings=float(sum_earned(link.rewards)),
                created_at=link.created_at,
            )
            for link in links
        ]
        return LinkListResponse(wallet_address=wallet, links=items, total=len(items))

    async def get_link_status(self, link_id: UUID) -> LinkStatusResponse:
        result = await self.db.execute(
            select(AgentLink)
            .options(selectinload(AgentLink.agent))
            .where(AgentLink.id == link_id)
        )
        link = result.scalar_one_or_none()
        if link is None:
            raise LinkNotFound(str(link_id))

        rewards_result = await self.db.execute(
            select(AgentReward)
            .where(AgentReward.link_id == link.id)
            .order_by(AgentReward.created_at.desc())
        )
        rewards = rewards_result.scalars().all()

        return LinkStatusResponse(
            id=link.id,
            wallet_address=link.agent.wallet_address,
            merchant_id=link.merchant_id,
            merchant_name=link.merchant_name,
            merchant_slug=link.merchant_slug,
            cashback_rate=format_cashback_rate(link.cashback_rate, self.token),
            short_url=self._short_url(link.short_code),
            tracking_url=link.tracking_url,
            sub_id=link.sub_id,
            click_count=link.click_count,
            last_click_at=link.last_click_at,
            rewards=[reward_detail(r) for r in rewards],
            created_at=link.created_at,
        )

    async def get_earnings(self, wallet_address: str) -> EarningsSummary:
        wallet = normalize_wallet_address(wallet_address)
        agent = await get_agent_by_wallet(self.db, wallet)
        if agent is None:
            return EarningsSummary(wallet_address=wallet)

        totals_result = await self.db.execute(
            select(AgentReward.status, func.coalesce(func.sum(AgentReward.commission_usdt), 0))
            .where(AgentReward.agent_id == agent.id)
            .group_by(AgentReward.status)
        )
        by_status: Dict[str, float] = {}
        for status, amount in totals_result.all():
            key = status.lower()
            by_status[key] = by_status.get(key, 0) + float(amount or 0)

        unknown = set(by_status) - set(EarningsByStatus.model_fields)
        if unknown:
            logger.warning(f"Agent {wallet[:10]}... has rewards with unknown statuses {sorted(unknown)}")
        breakdown = EarningsByStatus(
            **{k: v for k, v in by_status.items() if k in EarningsByStatus.model_fields}
        )

        links_count = await self.db.scalar(
            select(func.count(AgentLink.id)).where(AgentLink.agent_id == agent.id)
        )

        recent_result = await self.db.execute(
            select(AgentReward)
            .where(AgentReward.agent_id == agent.id)
            .order_by(AgentReward.created_at.desc())
            .limit(RECENT_TRANSACTIONS_LIMIT)
        )
        recent = [
            RecentTransaction(
                id=r.id,
                order_id=r.order_id,
                amount=float(r.commission_usdt or 0),
                status=r.status.lower(),
                tx_hash=r.tx_hash,
                created_at=r.created_at,
            )
            for r in recent_result.scalars().all()
        ]

        return EarningsSummary(
            wallet_address=wallet,
            total_earned_usdt=breakdown.commissioned + breakdown.paid,
            by_status=breakdown,
            total_links=links_count or 0,
            recent_transactions=recent,
        )
