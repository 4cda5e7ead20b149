"""Background worker that expires lapsed claims and invitations."""

import logging
from typing import Callable, NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import async_session_factory
from ..services.claim_service import ClaimService
from ..services.negotiation_service import NegotiationService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class SweepResult(NamedTuple):
    claims_expired: int
    invitations_expired: int


class ExpirySweepWorker(BaseWorker):
    """
    Periodically flips lapsed PENDING_CAR claims and open invitations to EXPIRED.

    Every read path already expires records lazily, so the sweep only keeps
    list views and reports fresh between accesses. It uses the same
    conditional writes as the lazy path, so the two never double-count.
    """

    def __init__(
        self,
        interval_seconds: int | None = None,
        batch_size: int | None = None,
        session_factory: Callable[[], AsyncSession] = async_session_factory,
    ):
        super().__init__(
            name="ExpirySweep",
            interval_seconds=interval_seconds or settings.expiry_sweep_interval_seconds,
        )
        self.batch_size = batch_size or settings.expiry_sweep_batch_size
        self.session_factory = session_factory

    async def process(self) -> SweepResult:
        """Run one sweep over claims, then invitations."""
        async with self.session_factory() as db:
            try:
                claims_expired = await ClaimService(db).expire_claims(self.batch_size)
                invitations_expired = await NegotiationService(db).expire_invitations(self.batch_size)
            except Exception:
                await db.rollback()
                raise

        if claims_expired or invitations_expired:
            logger.info(
                "Expiry sweep flipped lapsed records",
                extra={
                    "claims_expired": claims_expired,
                    "invitations_expired": invitations_expired,
                    "worker": self.name,
                }
            )
        return SweepResult(claims_expired, invitations_expired)
