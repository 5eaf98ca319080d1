"""
Tests for agent find-or-create and cashback formatting.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from agent_affiliate.models.agent import Agent
from agent_affiliate.services import link_service
from agent_affiliate.services.link_service import LinkService, format_cashback_rate
from tests.conftest import WALLET


@pytest.mark.parametrize("rate, expected", [
    (Decimal("4.500000"), "4.5% USDT"),
    (Decimal("10"), "10% USDT"),
    (Decimal("0.25"), "0.25% USDT"),
    (None, "0% USDT"),
])
def test_format_cashback_rate(rate, expected):
    assert format_cashback_rate(rate) == expected


async def test_get_or_create_agent_is_idempotent(db):
    service = LinkService(db, catalog=None, dispatcher=None, short_codes=None)

    first = await service.get_or_create_agent(WALLET.lower())
    second = await service.get_or_create_agent(WALLET.lower())

    assert first.id == second.id
    assert await db.scalar(select(func.count()).select_from(Agent)) == 1


async def test_get_or_create_agent_survives_lost_race(db, monkeypatch):
    wallet = WALLET.lower()
    db.add(Agent(wallet_address=wallet))
    await db.commit()

    real_lookup = link_service.get_agent_by_wallet
    lookups = []

    async def racy_lookup(session, wallet_address):
        # The first read happens before the competing insert becomes visible
        lookups.append(wallet_address)
        if len(lookups) == 1:
            return None
        return await real_lookup(session, wallet_address)

    monkeypatch.setattr(link_service, "get_agent_by_wallet", racy_lookup)
    service = LinkService(db, catalog=None, dispatcher=None, short_codes=None)

    agent = await service.get_or_create_agent(wallet)

    assert agent.wallet_address == wallet
    assert len(lookups) == 2
    assert await db.scalar(select(func.count()).select_from(Agent)) == 1
