"""
Merchant Catalog Client

Read-through client for the merchant catalog backend:
- Merchant lookup by id or slug
- Merchant search/listing
- Mediated tracking-link generation (fallback when a network API fails)

Only cashback rates paid in the settlement token (USDT) are kept.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from agent_affiliate.core.enum_utils import normalize_token, to_enum
from agent_affiliate.core.exceptions import CatalogError
from agent_affiliate.services.affiliate_network_service import AffiliateNetwork, LinkTarget

logger = logging.getLogger(__name__)


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except (InvalidOperation, ValueError):
        return Decimal("0")


@dataclass
class CashbackRate:
    """One cashback rate, in the settlement token."""
    id: str
    token_name: str
    token_symbol: str
    cashback_percent: Decimal = Decimal("0")
    cashback_amount: Decimal = Decimal("0")

    @property
    def value(self) -> Decimal:
        """Percent when the merchant pays a percentage, else the fixed amount."""
        return self.cashback_percent or self.cashback_amount


@dataclass
class Merchant:
    """Merchant fields consumed by link generation and the listing proxy."""
    id: str
    slug_id: str
    name: str
    description: str = ""
    url: str = ""
    img_url: List[str] = field(default_factory=list)
    category: str = "General"
    third_party_type: Optional[str] = None
    network: Optional[AffiliateNetwork] = None
    campaign_id: str = ""
    cashback_rates: List[CashbackRate] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def settlement_rate(self) -> Optional[CashbackRate]:
        return self.cashback_rates[0] if self.cashback_rates else None

    @property
    def is_linkable(self) -> bool:
        return self.settlement_rate is not None

    def link_target(self) -> LinkTarget:
        return LinkTarget(
            campaign_id=self.campaign_id,
            url=self.url,
            deep_link=self.metadata.get("deepLink"),
            metadata=self.metadata,
        )


def parse_merchant(raw: Dict[str, Any], settlement_token: str = "USDT") -> Merchant:
    """Transform a catalog merchant payload, keeping settlement-token rates only."""
    token = settlement_token.lower()
    rates = []
    for r in raw.get("cashBackRates") or []:
        token_info = r.get("tokenInfo") or {}
        name = (token_info.get("name") or "").lower()
        symbol = (token_info.get("symbol") or "").lower()
        if token not in name and token not in symbol:
            continue
        rates.append(CashbackRate(
            id=str(r.get("id", "")),
            token_name=token_info.get("name") or settlement_token,
            token_symbol=token_info.get("symbol") or settlement_token,
            cashback_percent=_to_decimal(r.get("cashbackPercent")),
            cashback_amount=_to_decimal(r.get("cashbackAmount")),
        ))

    third_party_type = raw.get("thirdPartyType")
    network = to_enum(normalize_token(third_party_type), AffiliateNetwork)
    if third_party_type and network is None:
        logger.warning(f"Merchant {raw.get('id')} declares unsupported network {third_party_type!r}")

    categories = raw.get("categoryMerchant") or []
    return Merchant(
        id=str(raw.get("id")),
        slug_id=raw.get("slugId") or str(raw.get("id")),
        name=raw.get("name") or "",
        description=raw.get("description") or "",
        url=raw.get("url") or "",
        img_url=raw.get("imgUrl") or [],
        category=(categories[0].get("name") if categories else None) or "General",
        third_party_type=third_party_type,
        network=network,
        campaign_id=str(raw.get("campaignId") or ""),
        cashback_rates=rates,
        metadata=raw.get("metadata") or {},
    )


class CatalogClient:
    """
    Client for the merchant catalog backend.

    Usage:
        client = CatalogClient(base_url, api_key)
        merchant = await client.get_merchant("trip-com")
        url = await client.generate_tracking_link(merchant.id, sub_id)
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        settlement_token: str = "USDT",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.settlement_token = settlement_token
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        params: Dict = None,
        body: Dict = None
    ) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=f"{self.base_url}{path}",
                    headers=headers,
                    params=params,
                    json=body
                )
        except httpx.TimeoutException as e:
            raise CatalogError("Catalog service timed out") from e
        except httpx.HTTPError as e:
            raise CatalogError(f"Catalog service unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                error_body = response.json()
            except ValueError:
                error_body = None
            message = error_body.get("message") if isinstance(error_body, dict) else None
            raise CatalogError(
                message or f"Catalog API error: {response.status_code}",
                details={"status": response.status_code}
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogError("Catalog service returned invalid JSON") from e
        if not isinstance(data, dict):
            raise CatalogError("Catalog service returned an unexpected payload")
        return data

    async def get_merchant(self, merchant_id: str) -> Optional[Merchant]:
        """Get merchant by ID or slug. None when the catalog doesn't know it."""
        try:
            response = await self._request("GET", f"/anonymous/merchant/{merchant_id}")
        except CatalogError as e:
            if e.details.get("status") == 404:
                return None
            raise

        raw = response.get("data")
        if not raw:
            return None
        return parse_merchant(raw, self.settlement_token)

    async def search_merchants(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        per_page: int = 20
    ) -> Dict[str, Any]:
        """Search merchants; merchants without a settlement-token rate are dropped."""
        params = {"page": page, "perPage": per_page}
        if query:
            params["search"] = query
        if category:
            params["category"] = category

        response = await self._request("GET", "/anonymous/list-merchant", params=params)
        merchants = [parse_merchant(m, self.settlement_token) for m in response.get("data") or []]
        merchants = [m for m in merchants if m.is_linkable]

        return {
            "merchants": merchants,
            "total": len(merchants),
            "page": page,
            "per_page": per_page,
        }

    async def generate_tracking_link(self, merchant_id: str, sub_id: str) -> str:
        """Generate a tracking link through the catalog backend's mediated endpoint."""
        response = await self._request(
            "POST",
            f"/anonymous/merchant/{merchant_id}/tracking-link",
            body={"subId": sub_id},
        )
        link = (response.get("data") or {}).get("linkTracking") or response.get("linkTracking")
        if not link:
            raise CatalogError("Catalog service returned no tracking link")
        return link
