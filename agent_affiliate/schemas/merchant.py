from typing import List, Optional

from agent_affiliate.schemas.base import BaseResponseSchema
from agent_affiliate.services.catalog_client import Merchant
from agent_affiliate.services.link_service import format_cashback_rate


class MerchantSummary(BaseResponseSchema):
    id: str
    slug_id: str
    name: str
    description: str = ""
    category: str = "General"
    img_url: Optional[str] = None
    cashback_rate: str
    cashback_rate_usdt: float = 0
    network: Optional[str] = None

    @classmethod
    def from_merchant(cls, merchant: Merchant, token: str = "USDT") -> "MerchantSummary":
        rate = merchant.settlement_rate.value if merchant.settlement_rate else 0
        return cls(
            id=merchant.id,
            slug_id=merchant.slug_id,
            name=merchant.name,
            description=merchant.description,
            category=merchant.category,
            img_url=merchant.img_url[0] if merchant.img_url else None,
            cashback_rate=format_cashback_rate(rate, token),
            cashback_rate_usdt=float(rate),
            network=merchant.third_party_type,
        )


class MerchantDetail(MerchantSummary):
    url: str = ""
    images: List[str] = []

    @classmethod
    def from_merchant(cls, merchant: Merchant, token: str = "USDT") -> "MerchantDetail":
        summary = MerchantSummary.from_merchant(merchant, token)
        return cls(
            **summary.model_dump(),
            url=merchant.url,
            images=list(merchant.img_url),
        )


class MerchantListResponse(BaseResponseSchema):
    merchants: List[MerchantSummary] = []
    total: int = 0
    page: int = 1
    per_page: int = 20
