"""Agent attribution models.

Supports:
- Agents identified by wallet address (created lazily, never duplicated)
- One tracking link per (agent, merchant) link request, with click telemetry
- Reward ledger reconciled from affiliate network postbacks
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agent_affiliate.core.enum_utils import enum_comment
from agent_affiliate.database import Base
from agent_affiliate.db_types import AmountType, JSONType, UUIDType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RewardStatus(str, Enum):
    """Canonical reward lifecycle."""
    NOT_TRACKED = "NOT_TRACKED"     # Vendor status not recognised
    PENDING = "PENDING"             # Order tracked, not yet approved
    COMMISSIONED = "COMMISSIONED"   # Commission approved by the network
    PAID = "PAID"                   # Commission settled, payout due
    CANCELLED = "CANCELLED"         # Reversed / rejected


class Agent(Base):
    """
    An AI agent, identified solely by its wallet address.
    The wallet is both the identity and the payout destination.
    """
    __tablename__ = "agents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    wallet_address: Mapped[str] = mapped_column(
        String(42),
        unique=True,
        nullable=False,
        index=True,
        comment="Lower-cased 0x address"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    # Relationships
    links: Mapped[List["AgentLink"]] = relationship(
        "AgentLink",
        back_populates="agent"
    )
    rewards: Mapped[List["AgentReward"]] = relationship(
        "AgentReward",
        back_populates="agent"
    )

    def __repr__(self) -> str:
        return f"<Agent(wallet_address={self.wallet_address})>"


class AgentLink(Base):
    """
    Tracking link issued to an agent for one merchant.
    Merchant name, slug and cashback rate are snapshots taken at creation.
    """
    __tablename__ = "agent_links"
    __table_args__ = (
        Index('ix_agent_links_agent_id', 'agent_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False
    )

    # Merchant snapshot
    merchant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    merchant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    merchant_slug: Mapped[str] = mapped_column(String(255), nullable=False)
    cashback_rate: Mapped[Decimal] = mapped_column(
        AmountType,
        nullable=False,
        default=Decimal("0"),
        comment="Cashback rate shown to the agent at link creation"
    )

    # Attribution
    sub_id: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Attribution token echoed back by postbacks"
    )
    tracking_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[str] = mapped_column(
        String(16),
        unique=True,
        nullable=False,
        index=True
    )

    # Click telemetry
    click_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_click_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    # Relationships
    agent: Mapped["Agent"] = relationship("Agent", back_populates="links")
    rewards: Mapped[List["AgentReward"]] = relationship(
        "AgentReward",
        back_populates="link"
    )

    def __repr__(self) -> str:
        return f"<AgentLink(short_code={self.short_code}, merchant_slug={self.merchant_slug})>"


class AgentReward(Base):
    """
    Commission event for one order through one link.
    At most one row per (link, order_id); orderless postbacks each get a row.
    """
    __tablename__ = "agent_rewards"
    __table_args__ = (
        UniqueConstraint('link_id', 'order_id', name='uq_agent_reward_link_order'),
        Index('ix_agent_rewards_agent_id', 'agent_id'),
        Index('ix_agent_rewards_status', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False
    )
    link_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("agent_links.id", ondelete="CASCADE"),
        nullable=False
    )

    # Order
    order_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    order_amount: Mapped[Decimal] = mapped_column(AmountType, nullable=False, default=Decimal("0"))
    order_currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")

    # Commission
    commission_usdt: Mapped[Decimal] = mapped_column(AmountType, nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RewardStatus.NOT_TRACKED.value,
        comment=enum_comment(RewardStatus)
    )
    status_history: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment='Append-only [{"at": iso8601, "status": ...}]'
    )

    # Postback
    postback_source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postback_data: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Raw last-seen postback payload"
    )

    # Payout
    tx_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payout_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    agent: Mapped["Agent"] = relationship("Agent", back_populates="rewards")
    link: Mapped["AgentLink"] = relationship("AgentLink", back_populates="rewards")

    def __repr__(self) -> str:
        return f"<AgentReward(order_id={self.order_id}, status={self.status})>"
