"""
Short Link Redirect

GET /s/{code} -> 302 to the tracking URL. Each hit counts as one click.
"""

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

from agent_affiliate.api.deps import ShortCodes

router = APIRouter(tags=["Short Links"])


@router.get("/s/{code}", include_in_schema=False)
async def redirect_short_link(code: str, short_codes: ShortCodes):
    target = await short_codes.resolve(code)
    return RedirectResponse(url=target, status_code=302)
