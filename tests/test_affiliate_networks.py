"""
Tests for the per-network link adapters. HTTP is served by httpx.MockTransport.
"""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from agent_affiliate.core.exceptions import CredentialsMissing, UpstreamRejected, UpstreamUnavailable
from agent_affiliate.services.affiliate_network_service import (
    NETWORK_ADAPTERS,
    AffiliateNetwork,
    ChineseanLinkBuilder,
    IChannelLinkBuilder,
    ImpactAPI,
    InvolveLinkBuilder,
    LinkTarget,
    NetworkCredentials,
    PartnerizeAPI,
    RakutenAPI,
    build_network_adapters,
    set_query_param,
)

SUB_ID = "agent_abcdef01_k3j4h5g6f7_lz1"

CREDENTIALS = NetworkCredentials(
    impact_account_sid="IRsid",
    impact_auth_token="tok",
    rakuten_token="rk",
    partnerize_sid="pz",
    partnerize_token="pzt",
)


def transport(handler):
    seen = []

    def wrapped(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped), seen


def test_registry_covers_every_network():
    assert set(NETWORK_ADAPTERS) == set(AffiliateNetwork)
    adapters = build_network_adapters(CREDENTIALS)
    assert all(adapters[n].network == n for n in AffiliateNetwork)


def test_set_query_param_replaces_existing_value():
    url = set_query_param("https://shop.example.com/p?a=1&subId=old#top", "subId", "new")
    assert url == "https://shop.example.com/p?a=1&subId=new#top"


async def test_impact_uses_basic_auth_and_sub_id():
    mock, seen = transport(lambda r: httpx.Response(200, json={"TrackingURL": "https://impact.example/t/1"}))
    adapter = ImpactAPI(CREDENTIALS, transport=mock)

    url = await adapter.generate_link(LinkTarget(campaign_id="991", deep_link="https://shop.example.com"), SUB_ID)

    assert url == "https://impact.example/t/1"
    request = seen[0]
    assert request.url.path == "/Mediapartners/IRsid/Programs/991/TrackingLinks"
    assert request.url.params["subId1"] == SUB_ID
    assert request.url.params["DeepLink"] == "https://shop.example.com"
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"IRsid:tok").decode()


async def test_impact_without_credentials():
    adapter = ImpactAPI(NetworkCredentials())

    with pytest.raises(CredentialsMissing):
        await adapter.generate_link(LinkTarget(campaign_id="991"), SUB_ID)


async def test_rakuten_posts_deep_link_request():
    body = {"advertiser": {"deep_link": {"deep_link_url": "https://click.linksynergy.com/x"}}}
    mock, seen = transport(lambda r: httpx.Response(200, json=body))
    adapter = RakutenAPI(CREDENTIALS, transport=mock)

    url = await adapter.generate_link(LinkTarget(campaign_id="42", url="https://shop.example.com"), SUB_ID)

    assert url == "https://click.linksynergy.com/x"
    sent = json.loads(seen[0].content)
    assert sent == {"url": "https://shop.example.com", "advertiser_id": 42, "u1": SUB_ID}


async def test_rakuten_rejects_non_numeric_advertiser():
    adapter = RakutenAPI(CREDENTIALS)

    with pytest.raises(UpstreamRejected):
        await adapter.generate_link(LinkTarget(campaign_id="abc"), SUB_ID)


async def test_partnerize_reads_tracking_url():
    mock, seen = transport(lambda r: httpx.Response(200, json={"link": {"tracking_url": "https://prf.hn/c/1"}}))
    adapter = PartnerizeAPI(CREDENTIALS, transport=mock)

    url = await adapter.generate_link(LinkTarget(campaign_id="c1"), SUB_ID)

    assert url == "https://prf.hn/c/1"
    assert seen[0].url.path == "/v2/publishers/pz/links"
    assert json.loads(seen[0].content)["params"] == [{"key": "Pubref", "value": SUB_ID}]


async def test_http_error_is_rejected():
    mock, _ = transport(lambda r: httpx.Response(403, text="forbidden"))
    adapter = PartnerizeAPI(CREDENTIALS, transport=mock)

    with pytest.raises(UpstreamRejected) as exc:
        await adapter.generate_link(LinkTarget(campaign_id="c1"), SUB_ID)
    assert exc.value.error_code == "403"


async def test_missing_tracking_url_is_rejected():
    mock, _ = transport(lambda r: httpx.Response(200, json={"link": {}}))
    adapter = PartnerizeAPI(CREDENTIALS, transport=mock)

    with pytest.raises(UpstreamRejected):
        await adapter.generate_link(LinkTarget(campaign_id="c1"), SUB_ID)


async def test_timeout_is_unavailable():
    def raise_timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = ImpactAPI(CREDENTIALS, transport=httpx.MockTransport(raise_timeout))

    with pytest.raises(UpstreamUnavailable):
        await adapter.generate_link(LinkTarget(campaign_id="991"), SUB_ID)


async def test_involve_builds_click_url():
    url = await InvolveLinkBuilder(CREDENTIALS).generate_link(LinkTarget(campaign_id="4501"), SUB_ID)

    assert url == f"https://invol.co/click?offer_id=4501&aff_sub={SUB_ID}"


async def test_ichannel_appends_sub_id():
    adapter = IChannelLinkBuilder(CREDENTIALS)

    with_url = await adapter.generate_link(LinkTarget(campaign_id="", url="https://shop.example.com/?ref=1"), SUB_ID)
    default = await adapter.generate_link(LinkTarget(campaign_id=""), SUB_ID)

    assert with_url == f"https://shop.example.com/?ref=1&subId={SUB_ID}"
    assert default == f"https://www.ichannel.com/click?subId={SUB_ID}"


async def test_ichannel_rejects_relative_url():
    with pytest.raises(UpstreamRejected):
        await IChannelLinkBuilder(CREDENTIALS).generate_link(LinkTarget(campaign_id="", url="shop/page"), SUB_ID)


async def test_chinesean_prefers_program_url():
    adapter = ChineseanLinkBuilder(CREDENTIALS)
    target = LinkTarget(campaign_id="7", metadata={"Url": "http://www.chinesean.com/p?x=1"})

    url = await adapter.generate_link(target, SUB_ID)

    assert url == f"https://www.chinesean.com/p?x=1&mId={SUB_ID}"


async def test_chinesean_click_banner_fallback():
    adapter = ChineseanLinkBuilder(CREDENTIALS)
    target = LinkTarget(campaign_id="7", metadata={"websiteId": "w1", "programId": "p2"})

    url = await adapter.generate_link(target, SUB_ID)

    assert url == f"https://www.chinesean.com/affiliate/clickBanner.do?wId=w1&pId=p2&cId=7&mId={SUB_ID}"
