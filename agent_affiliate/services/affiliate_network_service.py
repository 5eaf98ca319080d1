"""
Affiliate Network Integration Service

Generates tracking links through each affiliate network's own API.
The attribution token (subId) is passed in the network's sub-tracking
parameter so it comes back verbatim in conversion postbacks.

Supported Networks:
- Impact (Mediapartners API)
- Rakuten Advertising (Deep Links API)
- Partnerize (Publisher API)
- Involve Asia (URL construction)
- iChannel (URL construction)
- ChineseAN (URL construction)

Every adapter fails with CredentialsMissing, UpstreamRejected or
UpstreamUnavailable. Credentials are passed in at construction.
"""

import base64
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Type
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from agent_affiliate.core.exceptions import (
    CredentialsMissing,
    UpstreamRejected,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)


class AffiliateNetwork(str, Enum):
    """Supported affiliate networks (merchant `thirdPartyType`)."""
    IMPACT = "impact"
    RAKUTEN = "rakuten"
    PARTNERIZE = "partnerize"
    INVOLVE = "involve"
    ICHANNEL = "ichannel"
    CHINESEAN = "chinesean"


@dataclass(frozen=True)
class NetworkCredentials:
    """Per-network API credentials. Missing values disable the direct path."""
    impact_account_sid: Optional[str] = None
    impact_auth_token: Optional[str] = None
    rakuten_token: Optional[str] = None
    partnerize_sid: Optional[str] = None
    partnerize_token: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "NetworkCredentials":
        return cls(
            impact_account_sid=settings.IMPACT_ACCOUNT_SID,
            impact_auth_token=settings.IMPACT_AUTH_TOKEN,
            rakuten_token=settings.RAKUTEN_TOKEN,
            partnerize_sid=settings.PARTNERIZE_SID,
            partnerize_token=settings.PARTNERIZE_TOKEN,
        )


@dataclass(frozen=True)
class LinkTarget:
    """What a network needs to build a tracking link for one merchant."""
    campaign_id: str
    url: str = ""
    deep_link: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def set_query_param(url: str, key: str, value: str) -> str:
    """Set (or replace) one query parameter, keeping the rest of the URL intact."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != key]
    query.append((key, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class AffiliateNetworkAdapter:
    """Base class: one adapter per network, no shared mutable state."""

    network: AffiliateNetwork

    def __init__(
        self,
        credentials: NetworkCredentials,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.credentials = credentials
        self.timeout = timeout
        self._transport = transport

    async def generate_link(self, target: LinkTarget, sub_id: str) -> str:
        raise NotImplementedError

    async def _request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str] = None,
        params: Dict = None,
        body: Dict = None
    ) -> Dict:
        """Make a request to the network API and classify failures."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=body
                )
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(
                message=f"{self.network.value} API timed out",
                network=self.network.value,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(
                message=f"{self.network.value} API unreachable: {e}",
                network=self.network.value,
            ) from e

        if response.status_code >= 400:
            logger.warning(f"{self.network.value} API rejected request: HTTP {response.status_code}")
            raise UpstreamRejected(
                message=f"{self.network.value} API error: {response.status_code}",
                network=self.network.value,
                error_code=str(response.status_code),
                details={"response": response.text[:500]}
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamRejected(
                message=f"{self.network.value} API returned invalid JSON",
                network=self.network.value,
            ) from e

    def _require_tracking_url(self, value: Any) -> str:
        if not isinstance(value, str) or not value:
            raise UpstreamRejected(
                message=f"{self.network.value} API response has no tracking URL",
                network=self.network.value,
            )
        return value


class ImpactAPI(AffiliateNetworkAdapter):
    """
    Impact Mediapartners API.

    Documentation: https://integrations.impact.com/impact-publisher/reference
    """

    network = AffiliateNetwork.IMPACT
    BASE_URL = "https://api.impact.com/Mediapartners"

    async def generate_link(self, target: LinkTarget, sub_id: str) -> str:
        sid = self.credentials.impact_account_sid
        token = self.credentials.impact_auth_token
        if not sid or not token:
            raise CredentialsMissing("Impact credentials not configured", network=self.network.value)

        params = {"subId1": sub_id, "Type": "vanity"}
        if target.deep_link:
            params["DeepLink"] = target.deep_link

        auth_header = base64.b64encode(f"{sid}:{token}".encode()).decode()
        data = await self._request(
            "GET",
            f"{self.BASE_URL}/{sid}/Programs/{target.campaign_id}/TrackingLinks",
            headers={
                "Authorization": f"Basic {auth_header}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            params=params,
        )
        return self._require_tracking_url(data.get("TrackingURL"))


class RakutenAPI(AffiliateNetworkAdapter):
    """
    Rakuten Advertising Deep Links API.

    Documentation: https://developers.rakutenadvertising.com/
    """

    network = AffiliateNetwork.RAKUTEN
    DEEP_LINKS_URL = "https://api.linksynergy.com/v1/links/deep_links"

    async def generate_link(self, target: LinkTarget, sub_id: str) -> str:
        if not self.credentials.rakuten_token:
            raise CredentialsMissing("Rakuten credentials not configured", network=self.network.value)

        try:
            advertiser_id = int(target.campaign_id)
        except (TypeError, ValueError) as e:
            raise UpstreamRejected(
                message=f"Rakuten advertiser id must be numeric, got {target.campaign_id!r}",
                network=self.network.value,
            ) from e

        data = await self._request(
            "POST",
            self.DEEP_LINKS_URL,
            headers={
                "Authorization": f"Bearer {self.credentials.rakuten_token}",
                "Content-Type": "application/json",
            },
            body={
                "url": target.url,
                "advertiser_id": advertiser_id,
                "u1": sub_id,
            },
        )
        deep_link = (data.get("advertiser") or {}).get("deep_link") or {}
        return self._require_tracking_url(deep_link.get("deep_link_url"))


class PartnerizeAPI(AffiliateNetworkAdapter):
    """
    Partnerize Publisher API.

    Documentation: https://api-docs.partnerize.com/
    """

    network = AffiliateNetwork.PARTNERIZE
    BASE_URL = "https://api.partnerize.com/v2/publishers"

    async def generate_link(self, target: LinkTarget, sub_id: str) -> str:
        sid = self.credentials.partnerize_sid
        token = self.credentials.partnerize_token
        if not sid or not token:
            raise CredentialsMissing("Partnerize credentials not configured", network=self.network.value)

        data = await self._request(
            "POST",
            f"{self.BASE_URL}/{sid}/links",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            body={
                "campaign_id": target.campaign_id,
                "params": [{"key": "Pubref", "value": sub_id}],
                "active": True,
            },
        )
        return self._require_tracking_url((data.get("link") or {}).get("tracking_url"))


class InvolveLinkBuilder(AffiliateNetworkAdapter):
    """Involve Asia: tracking links are plain URL construction, no API call."""

    network = AffiliateNetwork.INVOLVE
    CLICK_URL = "https://invol.co/click"

    async def generate_link(self, target: LinkTarget, sub_id: str) -> str:
        return f"{self.CLICK_URL}?{urlencode({'offer_id': target.campaign_id, 'aff_sub': sub_id})}"


class IChannelLinkBuilder(AffiliateNetworkAdapter):
    """iChannel: the merchant URL carries the subId query parameter."""

    network = AffiliateNetwork.ICHANNEL
    DEFAULT_CLICK_URL = "https://www.ichannel.com/click"

    async def generate_link(self, target: LinkTarget, sub_id: str) -> str:
        base_url = target.url or self.DEFAULT_CLICK_URL
        parts = urlsplit(base_url)
        if not parts.scheme or not parts.netloc:
            raise UpstreamRejected(f"Invalid iChannel merchant URL: {base_url!r}", network=self.network.value)
        return set_query_param(base_url, "subId", sub_id)


class ChineseanLinkBuilder(AffiliateNetworkAdapter):
    """
    ChineseAN: prefer the program click URL from merchant metadata,
    else build a clickBanner URL from website/program/campaign ids.
    """

    network = AffiliateNetwork.CHINESEAN
    CLICK_BANNER_URL = "https://www.chinesean.com/affiliate/clickBanner.do"

    async def generate_link(self, target: LinkTarget, sub_id: str) -> str:
        metadata = target.metadata or {}
        program_url = metadata.get("Url")
        if program_url:
            link = set_query_param(program_url, "mId", sub_id)
            return link.replace("http://", "https://")

        params = {
            "wId": metadata.get("websiteId") or "",
            "pId": metadata.get("programId") or "",
            "cId": target.campaign_id,
            "mId": sub_id,
        }
        return f"{self.CLICK_BANNER_URL}?{urlencode(params)}"


NETWORK_ADAPTERS: Dict[AffiliateNetwork, Type[AffiliateNetworkAdapter]] = {
    AffiliateNetwork.IMPACT: ImpactAPI,
    AffiliateNetwork.RAKUTEN: RakutenAPI,
    AffiliateNetwork.PARTNERIZE: PartnerizeAPI,
    AffiliateNetwork.INVOLVE: InvolveLinkBuilder,
    AffiliateNetwork.ICHANNEL: IChannelLinkBuilder,
    AffiliateNetwork.CHINESEAN: ChineseanLinkBuilder,
}

_unmapped = set(AffiliateNetwork) - set(NETWORK_ADAPTERS)
if _unmapped:
    raise RuntimeError(f"No adapter registered for networks: {sorted(n.value for n in _unmapped)}")


def build_network_adapters(
    credentials: NetworkCredentials,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[AffiliateNetwork, AffiliateNetworkAdapter]:
    """Instantiate one adapter per supported network."""
    return {
        network: adapter_class(credentials, timeout=timeout, transport=transport)
        for network, adapter_class in NETWORK_ADAPTERS.items()
    }
