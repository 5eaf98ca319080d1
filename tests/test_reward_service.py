"""
Tests for postback ingestion: merge rules, retries and payout triggering.
"""

from __future__ import annotations

import logging
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from agent_affiliate.core.exceptions import LinkNotFound, ReconciliationConflict, ValidationError
from agent_affiliate.models.agent import AgentReward
from agent_affiliate.services.reward_service import RewardService, parse_postback
from tests.conftest import FakePayouts, WALLET


@pytest.fixture
def service(db):
    return RewardService(db, FakePayouts(), max_retries=3)


async def reward_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(AgentReward))


def test_parse_postback_is_lenient():
    payload = parse_postback({
        "subId": "  agent_x  ",
        "orderId": "",
        "orderAmount": "12.40",
        "orderCurrency": "eur",
        "commissionUsdt": "n/a",
        "extra": {"ignored": True},
    })

    assert payload.sub_id == "agent_x"
    assert payload.order_id is None
    assert payload.order_amount == Decimal("12.40")
    assert payload.order_currency == "EUR"
    assert payload.commission_usdt == Decimal("0")
    assert payload.status is None


@pytest.mark.parametrize("raw", [{}, {"subId": ""}, {"subId": "   "}, {"subId": 42}, ["subId"]])
def test_parse_postback_requires_sub_id(raw):
    with pytest.raises(ValidationError):
        parse_postback(raw)


async def test_first_postback_creates_reward(service, agent_link, db):
    outcome = await service.ingest_postback({
        "subId": agent_link.sub_id,
        "orderId": "O1",
        "orderAmount": 220,
        "commissionUsdt": 9.9,
        "status": "Pending",
        "source": "involve",
    })

    reward = outcome.reward
    assert outcome.wallet_address == WALLET.lower()
    assert outcome.payout_error is None
    assert reward.status == "PENDING"
    assert reward.link_id == agent_link.id
    assert reward.agent_id == agent_link.agent_id
    assert reward.order_amount == Decimal("220")
    assert reward.postback_source == "involve"
    assert len(reward.status_history) == 1
    assert reward.status_history[0]["status"] == "PENDING"
    assert await reward_count(db) == 1


async def test_history_follows_arrival_order(service, agent_link, db):
    for status in ["pending", "approved", "success"]:
        await service.ingest_postback({"subId": agent_link.sub_id, "orderId": "O1", "status": status})

    reward = (await db.execute(select(AgentReward))).scalar_one()
    assert reward.status == "PAID"
    assert [h["status"] for h in reward.status_history] == ["PENDING", "COMMISSIONED", "PAID"]


async def test_regression_is_applied_and_logged(service, agent_link, caplog):
    await service.ingest_postback({"subId": agent_link.sub_id, "orderId": "O1", "status": "approved"})

    with caplog.at_level(logging.WARNING, logger="agent_affiliate.services.reward_service"):
        outcome = await service.ingest_postback(
            {"subId": agent_link.sub_id, "orderId": "O1", "status": "pending"}
        )

    assert outcome.reward.status == "PENDING"
    assert any("moving backwards" in record.message for record in caplog.records)


async def test_payout_only_on_positive_paid(service, agent_link):
    await service.ingest_postback({"subId": agent_link.sub_id, "orderId": "O1", "status": "paid"})
    assert service.payouts.calls == []

    outcome = await service.ingest_postback(
        {"subId": agent_link.sub_id, "orderId": "O2", "commissionUsdt": "4.25", "status": "paid"}
    )

    assert service.payouts.calls == [(WALLET.lower(), Decimal("4.25"), str(outcome.reward.id))]


async def test_unknown_sub_id(service, agent_link):
    with pytest.raises(LinkNotFound):
        await service.ingest_postback({"subId": "agent_00000000_missing_0", "status": "paid"})


async def test_concurrent_create_is_retried_as_update(service, agent_link, db):
    await service.ingest_postback({"subId": agent_link.sub_id, "orderId": "O1", "status": "pending"})

    real_find = service._find_reward
    calls = []

    async def stale_read(link_id, order_id):
        # First attempt misses the row another writer just inserted
        calls.append(order_id)
        if len(calls) == 1:
            return None
        return await real_find(link_id, order_id)

    service._find_reward = stale_read
    outcome = await service.ingest_postback(
        {"subId": agent_link.sub_id, "orderId": "O1", "commissionUsdt": 2, "status": "approved"}
    )

    assert len(calls) == 2
    assert outcome.reward.status == "COMMISSIONED"
    assert await reward_count(db) == 1
    reward = (await db.execute(select(AgentReward))).scalar_one()
    assert [h["status"] for h in reward.status_history] == ["PENDING", "COMMISSIONED"]


async def test_conflict_exhausts_retries(service, agent_link):
    attempts = []

    async def always_stale(link_id, order_id):
        attempts.append(order_id)
        raise StaleDataError("row changed underneath")

    service._find_reward = always_stale

    with pytest.raises(ReconciliationConflict):
        await service.ingest_postback({"subId": agent_link.sub_id, "orderId": "O1", "status": "approved"})
    assert len(attempts) == 3


async def test_backwards_warning_names_allowed_transitions(service, agent_link, caplog):
    await service.ingest_postback({"subId": agent_link.sub_id, "orderId": "O1", "status": "approved"})

    with caplog.at_level(logging.WARNING, logger="agent_affiliate.services.reward_service"):
        await service.ingest_postback({"subId": agent_link.sub_id, "orderId": "O1", "status": "pending"})

    assert any("['PAID', 'CANCELLED']" in record.message for record in caplog.records)


def test_parse_postback_caps_text_to_column_widths():
    payload = parse_postback({"subId": "agent_x", "orderId": "9" * 300, "source": "s" * 150})

    assert payload.order_id == "9" * 255
    assert payload.source == "s" * 100


async def test_over_length_text_is_stored_truncated(service, agent_link, db):
    outcome = await service.ingest_postback({
        "subId": agent_link.sub_id,
        "orderId": "O" * 300,
        "source": "x" * 101,
        "status": "pending",
    })

    reward = (await db.execute(select(AgentReward).where(AgentReward.id == outcome.reward.id))).scalar_one()
    assert len(reward.order_id) == 255
    assert reward.postback_source == "x" * 100
