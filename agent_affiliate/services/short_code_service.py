"""
Short Code Service

Mints short codes for tracking links and resolves them for redirects.

Codes use a URL-safe alphabet without look-alike characters (0/O, 1/l/I, i/o).
Default 7 chars = 55^7 ~ 1.5 trillion combinations.

Uniqueness is enforced by the unique index on agent_links.short_code:
a writer that loses a race gets an IntegrityError and retries with a
fresh draw, bounded by SHORT_CODE_MAX_ATTEMPTS.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agent_affiliate.core.exceptions import ShortCodeExhausted, ShortCodeNotFound
from agent_affiliate.models.agent import AgentLink

logger = logging.getLogger(__name__)

SHORT_CODE_ALPHABET = "23456789abcdefghjkmnpqrstuvwxyzABCDEFGHJKMNPQRSTUVWXYZ"


def generate_short_code(length: int = 7) -> str:
    """Generate a random short code."""
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))


class ShortCodeService:
    """
    Service for minting and resolving short links.

    Usage:
        service = ShortCodeService(db, base_url="https://lgn.to")
        link = await service.assign(lambda code: AgentLink(..., short_code=code))
        target = await service.resolve(link.short_code)
    """

    def __init__(
        self,
        db: AsyncSession,
        base_url: str,
        length: int = 7,
        max_attempts: int = 10
    ):
        self.db = db
        self.base_url = base_url.rstrip("/")
        self.length = length
        self.max_attempts = max_attempts

    def mint(self) -> str:
        return generate_short_code(self.length)

    def build_short_url(self, code: str) -> str:
        return f"{self.base_url}/{code}"

    async def _code_exists(self, code: str) -> bool:
        result = await self.db.execute(
            select(AgentLink.id).where(AgentLink.short_code == code)
        )
        return result.first() is not None

    async def assign(self, build_link: Callable[[str], AgentLink]) -> AgentLink:
        """
        Persist a link under a freshly minted short code.

        build_link receives the code and returns the unsaved AgentLink.
        Each attempt runs in its own SAVEPOINT so a collision only discards
        that attempt.
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self.mint()
            link = build_link(code)
            try:
                async with self.db.begin_nested():
                    self.db.add(link)
            except IntegrityError:
                if not await self._code_exists(code):
                    raise
                logger.warning(f"Short code collision on attempt {attempt}, drawing again")
                continue
            return link

        logger.error(f"No free short code after {self.max_attempts} attempts")
        raise ShortCodeExhausted(f"Could not allocate a short code after {self.max_attempts} attempts")

    async def resolve(self, code: str) -> str:
        """Return the tracking URL for a code and count the click."""
        result = await self.db.execute(
            select(AgentLink.id, AgentLink.tracking_url).where(AgentLink.short_code == code)
        )
        row = result.first()
        if row is None:
            raise ShortCodeNotFound(code)

        await self._record_click(row.id)
        return row.tracking_url

    async def _record_click(self, link_id: UUID) -> None:
        """Atomically bump click telemetry. Never fails the redirect."""
        try:
            await self.db.execute(
                update(AgentLink)
                .where(AgentLink.id == link_id)
                .values(
                    click_count=AgentLink.click_count + 1,
                    last_click_at=datetime.now(timezone.utc),
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Click telemetry update failed for link {link_id}: {e}")
            await self.db.rollback()
