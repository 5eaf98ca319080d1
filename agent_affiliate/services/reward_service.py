"""
Reward Service

Reconciles affiliate network postbacks into the reward ledger.

Flow:
1. Parse the payload leniently (only subId is mandatory)
2. Resolve the link and its agent wallet by subId
3. Merge into the reward for (link, order_id), or create one
4. Commit, then request a payout when the reward settles as PAID

Concurrency:
- (link_id, order_id) is unique, so two first postbacks for the same order
  cannot both insert
- agent_rewards.version is a SQLAlchemy version counter, so two merges of the
  same row cannot silently overwrite each other
Either conflict rolls back the SAVEPOINT and the merge is replayed against
fresh state.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from agent_affiliate.core.attribution import extract_wallet_prefix
from agent_affiliate.core.exceptions import (
    LinkNotFound,
    PayoutError,
    ReconciliationConflict,
    ValidationError,
)
from agent_affiliate.models.agent import Agent, AgentLink, AgentReward, RewardStatus
from agent_affiliate.schemas.reward import PostbackPayload
from agent_affiliate.services.payout_service import PayoutRequester
from agent_affiliate.services.reward_state_machine import (
    append_status,
    get_allowed_transitions,
    is_forward_transition,
    map_vendor_status,
)

logger = logging.getLogger(__name__)


def parse_postback(raw: Any) -> PostbackPayload:
    """Validate a raw postback body; a missing subId is the only hard failure."""
    if not isinstance(raw, dict):
        raise ValidationError("Postback body must be a JSON object")
    try:
        return PostbackPayload.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError("subId is required") from e


@dataclass
class PostbackOutcome:
    reward: AgentReward
    wallet_address: str
    payout_error: Optional[str] = None


class RewardService:
    """Postback ingestion and payout triggering."""

    def __init__(
        self,
        db: AsyncSession,
        payouts: PayoutRequester,
        max_retries: int = 5
    ):
        self.db = db
        self.payouts = payouts
        self.max_retries = max_retries

    async def _get_link(self, sub_id: str) -> Tuple[AgentLink, str]:
        result = await self.db.execute(
            select(AgentLink, Agent.wallet_address)
            .join(Agent, Agent.id == AgentLink.agent_id)
            .where(AgentLink.sub_id == sub_id)
        )
        row = result.first()
        if row is None:
            logger.warning(
                f"Postback for unknown subId {sub_id!r} (wallet prefix {extract_wallet_prefix(sub_id)})"
            )
            raise LinkNotFound(sub_id)
        return row[0], row[1]

    async def _find_reward(self, link_id: UUID, order_id: Optional[str]) -> Optional[AgentReward]:
        if order_id is None:
            return None
        result = await self.db.execute(
            select(AgentReward)
            .where(
                AgentReward.link_id == link_id,
                AgentReward.order_id == order_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _apply(
        self,
        reward: AgentReward,
        payload: PostbackPayload,
        status: RewardStatus,
        raw: Dict[str, Any]
    ) -> None:
        """Merge a postback into an existing reward."""
        if not is_forward_transition(reward.status, status.value):
            logger.warning(
                f"Reward {reward.id} moving backwards {reward.status} -> {status.value} "
                f"(order={reward.order_id}, expected one of {get_allowed_transitions(reward.status)})"
            )

        reward.status = status.value
        if payload.commission_usdt > 0:
            reward.commission_usdt = payload.commission_usdt
        if payload.order_amount > 0:
            reward.order_amount = payload.order_amount
        if raw.get("orderCurrency"):
            reward.order_currency = payload.order_currency
        if payload.source:
            reward.postback_source = payload.source
        reward.status_history = append_status(reward.status_history, status)
        reward.postback_data = raw

    def _create(
        self,
        link: AgentLink,
        payload: PostbackPayload,
        status: RewardStatus,
        raw: Dict[str, Any]
    ) -> AgentReward:
        reward = AgentReward(
            agent_id=link.agent_id,
            link_id=link.id,
            order_id=payload.order_id,
            order_amount=payload.order_amount,
            order_currency=payload.order_currency,
            commission_usdt=payload.commission_usdt,
            status=status.value,
            status_history=append_status([], status),
            postback_source=payload.source,
            postback_data=raw,
        )
        self.db.add(reward)
        return reward

    async def _merge(
        self,
        link: AgentLink,
        payload: PostbackPayload,
        status: RewardStatus,
        raw: Dict[str, Any]
    ) -> AgentReward:
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self.db.begin_nested():
                    reward = await self._find_reward(link.id, payload.order_id)
                    if reward is None:
                        reward = self._create(link, payload, status, raw)
                    else:
                        self._apply(reward, payload, status, raw)
                return reward
            except (IntegrityError, StaleDataError) as e:
                logger.warning(
                    f"Concurrent update on reward link={link.id} order={payload.order_id}, "
                    f"attempt {attempt}/{self.max_retries}: {type(e).__name__}"
                )

        raise ReconciliationConflict(
            f"Could not reconcile postback for order {payload.order_id} after {self.max_retries} attempts"
        )

    async def _settle(self, reward: AgentReward, wallet_address: str) -> Optional[str]:
        """Request the payout for a PAID reward. Returns the soft error, if any."""
        if reward.status != RewardStatus.PAID.value:
            return None
        if reward.commission_usdt is None or Decimal(reward.commission_usdt) <= 0:
            return None
        if reward.tx_hash or reward.paid_at:
            logger.info(f"Reward {reward.id} already settled, skipping payout")
            return None

        try:
            receipt = await self.payouts.request_payout(
                wallet_address,
                Decimal(reward.commission_usdt),
                str(reward.id),
            )
        except PayoutError as e:
            logger.error(f"Payout failed for reward {reward.id}: {e.message}")
            await self._record_payout(reward.id, payout_error=e.message)
            return e.message

        await self._record_payout(
            reward.id,
            tx_hash=receipt.tx_hash,
            paid_at=datetime.now(timezone.utc),
        )
        logger.info(f"Payout requested for reward {reward.id} (tx={receipt.tx_hash})")
        return None

    async def _record_payout(self, reward_id: UUID, **values) -> None:
        """Write payout bookkeeping with a single UPDATE, bumping the version."""
        values.setdefault("payout_error", None)
        await self.db.execute(
            update(AgentReward)
            .where(AgentReward.id == reward_id)
            .values(
                version=AgentReward.version + 1,
                updated_at=datetime.now(timezone.utc),
                **values,
            )
        )
        await self.db.commit()

    async def ingest_postback(self, raw: Any) -> PostbackOutcome:
        payload = parse_postback(raw)
        link, wallet_address = await self._get_link(payload.sub_id)
        status = map_vendor_status(payload.status)

        reward = await self._merge(link, payload, status, raw)
        await self.db.commit()

        logger.info(
            f"Postback applied: reward={reward.id} order={reward.order_id} "
            f"status={reward.status} commission={reward.commission_usdt}"
        )

        payout_error = await self._settle(reward, wallet_address)
        return PostbackOutcome(reward=reward, wallet_address=wallet_address, payout_error=payout_error)
