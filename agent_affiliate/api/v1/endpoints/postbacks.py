"""
Postback Webhook Endpoint

Called by the catalog backend / affiliate networks when a conversion
changes state. Payloads are free-form; only subId is required.

Idempotent: repeated postbacks for the same (link, orderId) merge into one
reward. A failed payout is reported as payoutError, not as a failure.
"""

import json
import logging

from fastapi import APIRouter, Request

from agent_affiliate.api.deps import Rewards
from agent_affiliate.core.exceptions import ValidationError
from agent_affiliate.schemas.base import ApiResponse
from agent_affiliate.schemas.reward import PostbackResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/postback",
    response_model=ApiResponse[PostbackResult],
    response_model_exclude_none=True,
)
async def receive_postback(request: Request, rewards: Rewards):
    """Receive a conversion postback from an affiliate network."""
    body = await request.body()
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON payload")

    logger.info(f"Received postback: subId={payload.get('subId') if isinstance(payload, dict) else None}")

    outcome = await rewards.ingest_postback(payload)
    return ApiResponse(data=PostbackResult(
        reward_id=outcome.reward.id,
        status=outcome.reward.status,
        wallet_address=outcome.wallet_address,
        payout_error=outcome.payout_error,
    ))
