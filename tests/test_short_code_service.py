"""
Tests for short code minting, collision retry and click telemetry.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

from agent_affiliate.core.exceptions import ShortCodeExhausted, ShortCodeNotFound
from agent_affiliate.models.agent import AgentLink
from agent_affiliate.services.short_code_service import (
    SHORT_CODE_ALPHABET,
    ShortCodeService,
    generate_short_code,
)


def link_factory(agent_link, suffix):
    def build(code):
        return AgentLink(
            agent_id=agent_link.agent_id,
            merchant_id="m-1001",
            merchant_name="Trip.com",
            merchant_slug="trip-com",
            cashback_rate=Decimal("4.5"),
            sub_id=f"agent_aaaa0000_{suffix}_m0",
            tracking_url=f"https://track.example.com/{suffix}",
            short_code=code,
        )
    return build


def test_generated_codes_use_unambiguous_alphabet():
    for _ in range(200):
        code = generate_short_code(7)
        assert len(code) == 7
        assert set(code) <= set(SHORT_CODE_ALPHABET)

    assert not set("0O1lIio") & set(SHORT_CODE_ALPHABET)


def test_build_short_url_strips_trailing_slash():
    service = ShortCodeService(None, base_url="https://lgn.to/s/")

    assert service.build_short_url("abc2345") == "https://lgn.to/s/abc2345"


async def test_assign_retries_on_collision(db, agent_link):
    service = ShortCodeService(db, base_url="https://lgn.to/s", max_attempts=5)
    draws = iter(["abc2345", "abc2345", "xyz6789"])
    service.mint = lambda: next(draws)

    link = await service.assign(link_factory(agent_link, "second"))
    await db.commit()

    assert link.short_code == "xyz6789"
    codes = (await db.execute(select(AgentLink.short_code).order_by(AgentLink.short_code))).scalars().all()
    assert codes == ["abc2345", "xyz6789"]


async def test_assign_gives_up_after_max_attempts(db, agent_link):
    service = ShortCodeService(db, base_url="https://lgn.to/s", max_attempts=3)
    attempts = []

    def mint():
        attempts.append(1)
        return "abc2345"

    service.mint = mint

    with pytest.raises(ShortCodeExhausted):
        await service.assign(link_factory(agent_link, "third"))
    assert len(attempts) == 3


async def test_resolve_returns_url_and_counts_each_click(db, agent_link):
    service = ShortCodeService(db, base_url="https://lgn.to/s")

    for expected in (1, 2, 3):
        url = await service.resolve("abc2345")
        assert url == agent_link.tracking_url
        count = await db.scalar(select(AgentLink.click_count).where(AgentLink.id == agent_link.id))
        assert count == expected


async def test_resolve_unknown_code(db, agent_link):
    service = ShortCodeService(db, base_url="https://lgn.to/s")

    with pytest.raises(ShortCodeNotFound):
        await service.resolve("nope234")


async def test_resolve_survives_click_telemetry_failure(db, agent_link, failing_updates):
    link_id = agent_link.id
    tracking_url = agent_link.tracking_url
    service = ShortCodeService(db, base_url="https://lgn.to/s")
    failing_updates()

    url = await service.resolve("abc2345")

    assert url == tracking_url
    count = await db.scalar(select(AgentLink.click_count).where(AgentLink.id == link_id))
    assert count == 0
