"""
Pytest fixtures for agent affiliate tests.

Uses a temporary SQLite DB per test. The merchant catalog, network adapters
and payout service are replaced by in-memory fakes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import Update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from agent_affiliate.core.exceptions import CatalogError, PayoutError
from agent_affiliate.database import create_engine_for_url, create_session_factory, init_db
from agent_affiliate.models.agent import Agent, AgentLink
from agent_affiliate.services.catalog_client import Merchant, parse_merchant
from agent_affiliate.services.payout_service import PayoutReceipt

WALLET = "0xAAAA000000000000000000000000000000000001"
OTHER_WALLET = "0xbbbb000000000000000000000000000000000002"

TRIP_COM = {
    "id": "m-1001",
    "slugId": "trip-com",
    "name": "Trip.com",
    "description": "Flights and hotels",
    "url": "https://www.trip.com",
    "imgUrl": ["https://cdn.example.com/trip.png"],
    "thirdPartyType": "involve",
    "campaignId": "4501",
    "categoryMerchant": [{"name": "Travel"}],
    "cashBackRates": [
        {"id": "r-btc", "cashbackPercent": 2, "tokenInfo": {"name": "Bitcoin", "symbol": "BTC"}},
        {"id": "r-usdt", "cashbackPercent": "4.5", "tokenInfo": {"name": "Tether USD", "symbol": "USDT"}},
    ],
}

BTC_ONLY = {
    "id": "m-2002",
    "slugId": "btc-shop",
    "name": "BTC Shop",
    "url": "https://btc.example.com",
    "thirdPartyType": "impact",
    "campaignId": "77",
    "cashBackRates": [
        {"id": "r-btc", "cashbackPercent": 3, "tokenInfo": {"name": "Bitcoin", "symbol": "BTC"}},
    ],
}


class FakeCatalog:
    """In-memory merchant catalog with a mediated tracking-link endpoint."""

    settlement_token = "USDT"

    def __init__(self, merchants: List[dict]):
        self.merchants = [parse_merchant(raw, self.settlement_token) for raw in merchants]
        self.tracking_calls: List[tuple] = []
        self.fail_tracking = False

    async def get_merchant(self, merchant_id: str) -> Optional[Merchant]:
        for merchant in self.merchants:
            if merchant_id in (merchant.id, merchant.slug_id):
                return merchant
        return None

    async def search_merchants(self, query=None, category=None, page=1, per_page=20) -> Dict:
        merchants = [m for m in self.merchants if m.is_linkable]
        if query:
            merchants = [m for m in merchants if query.lower() in m.name.lower()]
        return {"merchants": merchants, "total": len(merchants), "page": page, "per_page": per_page}

    async def generate_tracking_link(self, merchant_id: str, sub_id: str) -> str:
        self.tracking_calls.append((merchant_id, sub_id))
        if self.fail_tracking:
            raise CatalogError("Catalog service unreachable")
        return f"https://track.example.com/{merchant_id}?subId={sub_id}"


class FakePayouts:
    """Records payout requests; optionally fails them."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.error: Optional[str] = None

    async def request_payout(self, wallet_address: str, amount: Decimal, reference: str) -> PayoutReceipt:
        self.calls.append((wallet_address, amount, reference))
        if self.error:
            raise PayoutError(self.error, reference=reference)
        return PayoutReceipt(reference=reference, tx_hash=f"0xtx{len(self.calls)}", status="submitted")


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'agent_affiliate.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog():
    return FakeCatalog([TRIP_COM, BTC_ONLY])


@pytest.fixture
def payouts():
    return FakePayouts()


@pytest.fixture
async def agent_link(db):
    """One agent with one persisted link (short code 'abc2345')."""
    agent = Agent(wallet_address=WALLET.lower())
    db.add(agent)
    await db.flush()
    link = AgentLink(
        agent_id=agent.id,
        merchant_id="m-1001",
        merchant_name="Trip.com",
        merchant_slug="trip-com",
        cashback_rate=Decimal("4.5"),
        sub_id="agent_aaaa0000_testsubid1_m0",
        tracking_url="https://invol.co/click?offer_id=4501&aff_sub=agent_aaaa0000_testsubid1_m0",
        short_code="abc2345",
    )
    db.add(link)
    await db.commit()
    return link


@pytest.fixture
def failing_updates(monkeypatch):
    """Returns a switch that makes every UPDATE through an AsyncSession fail like a locked database."""
    real_execute = AsyncSession.execute

    async def execute(self, statement, *args, **kwargs):
        if isinstance(statement, Update):
            raise OperationalError("UPDATE agent_links", {}, Exception("database is locked"))
        return await real_execute(self, statement, *args, **kwargs)

    def enable():
        monkeypatch.setattr(AsyncSession, "execute", execute)

    return enable


@pytest.fixture
async def client(session_factory, catalog, payouts):
    """In-process API client with the DB and outbound collaborators overridden."""
    from agent_affiliate.api.deps import get_catalog, get_network_adapters, get_payouts
    from agent_affiliate.database import get_db
    from agent_affiliate.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog] = lambda: catalog
    # No direct adapters: every link goes through the catalog fallback
    app.dependency_overrides[get_network_adapters] = lambda: {}
    app.dependency_overrides[get_payouts] = lambda: payouts

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
