"""
Payout Service

Requests USDT payouts for settled rewards from the downstream payout
service. Fund movement, retries and ledger bookkeeping belong to that
service; this side issues one request per settlement and reports failures.

The reward id is sent as the idempotency reference.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

import httpx

from agent_affiliate.core.exceptions import PayoutError

logger = logging.getLogger(__name__)


@dataclass
class PayoutReceipt:
    """Payout service acknowledgement."""
    reference: str
    tx_hash: Optional[str] = None
    status: Optional[str] = None


class PayoutRequester(Protocol):
    async def request_payout(
        self,
        wallet_address: str,
        amount: Decimal,
        reference: str
    ) -> PayoutReceipt:
        ...


class HttpPayoutRequester:
    """PayoutRequester over HTTP (POST JSON, optional bearer key)."""

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        token: str = "USDT",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.token = token
        self._transport = transport

    async def request_payout(
        self,
        wallet_address: str,
        amount: Decimal,
        reference: str
    ) -> PayoutReceipt:
        if not self.url:
            raise PayoutError("Payout service not configured", reference=reference)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "walletAddress": wallet_address,
            "amount": str(amount),
            "currency": self.token,
            "reference": reference,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise PayoutError("Payout service timed out", reference=reference) from e
        except httpx.HTTPError as e:
            raise PayoutError(f"Payout service unreachable: {e}", reference=reference) from e

        if response.status_code >= 400:
            raise PayoutError(f"Payout service error: HTTP {response.status_code}", reference=reference)

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        logger.info(f"Payout requested: {amount} {self.token} to {wallet_address[:10]}... ref={reference}")
        return PayoutReceipt(
            reference=reference,
            tx_hash=data.get("txHash") or data.get("tx_hash"),
            status=data.get("status"),
        )
