"""Claim service: exclusive, time-boxed host claims on reservation requests."""

import logging
import secrets
import string
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import AuthorizationError, ConflictError, ExpiredError, NotFoundError
from ..core.observability import metrics_collector
from ..models.claim import ACTIVE_CLAIM_STATUSES, REVIVABLE_CLAIM_STATUSES, ClaimStatus, RequestClaim
from ..models.host import Host
from ..models.reservation_request import RequestStatus, ReservationRequest
from ..schemas.request import CreateReservationRequest, SearchReservationRequests
from .expiry import claim_is_lapsed

logger = logging.getLogger(__name__)

REQUEST_CODE_PREFIX = "REQ-"


class ClaimConflictError(ConflictError):
    """Exception when another host already holds the request."""

    def __init__(self, request_id: str, status: str | None = None):
        super().__init__(
            detail=f"Reservation request {request_id} is not open for claiming",
            conflicting_resource={
                "request_id": request_id,
                "status": status,
            },
            code="ALREADY_CLAIMED",
            retryable=True,
        )


class ClaimService:
    """Service for claim-related operations."""

    def __init__(self, db: AsyncSession, claim_ttl: timedelta | None = None):
        self.db = db
        self.claim_ttl = claim_ttl or timedelta(minutes=settings.claim_ttl_minutes)

    def _generate_request_code(self, length: int = 6) -> str:
        """Generate a human-readable request code."""
        alphabet = string.ascii_uppercase + string.digits
        return REQUEST_CODE_PREFIX + ''.join(secrets.choice(alphabet) for _ in range(length))

    async def create_request(self, request: CreateReservationRequest) -> ReservationRequest:
        """
        Register a new reservation request in OPEN status.

        Args:
            request: Intake payload

        Returns:
            Created reservation request
        """
        code = self._generate_request_code()
        while await self.get_request_by_code(code):
            code = self._generate_request_code()

        duration_days = None
        if request.start_date and request.end_date:
            duration_days = max(1, (request.end_date - request.start_date).days)

        reservation = ReservationRequest(
            request_code=code,
            status=RequestStatus.OPEN,
            duration_days=duration_days,
            **request.model_dump(),
        )
        self.db.add(reservation)
        await self.db.commit()
        await self.db.refresh(reservation)

        logger.info(
            "Reservation request created",
            extra={
                "request_id": str(reservation.id),
                "request_code": code,
                "priority": reservation.priority,
                "start_date": request.start_date.isoformat() if request.start_date else None,
                "end_date": request.end_date.isoformat() if request.end_date else None,
            }
        )
        return reservation

    async def claim(self, request_id: UUID, host_id: UUID) -> RequestClaim:
        """
        Claim an OPEN reservation request for a host.

        The OPEN -> CLAIMED transition is a single conditional write, so of
        two simultaneous claimants exactly one succeeds.

        Raises:
            NotFoundError: If the request or the host does not exist
            ClaimConflictError: If the request is not OPEN
        """
        now = utcnow()

        await self.expire_lapsed_claims(request_id, now)

        stmt = (
            update(ReservationRequest)
            .where(
                ReservationRequest.id == request_id,
                ReservationRequest.status == RequestStatus.OPEN,
            )
            .values(
                status=RequestStatus.CLAIMED,
                claim_attempts=ReservationRequest.claim_attempts + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        if result.rowcount == 0:
            await self._reject_claim(request_id, host_id)

        if await self.db.get(Host, host_id) is None:
            await self.db.rollback()
            raise NotFoundError(resource_type="host", resource_id=str(host_id))

        claim = await self.get_claim_for_host(request_id, host_id)
        if claim is None:
            claim = RequestClaim(request_id=request_id, host_id=host_id)
            self.db.add(claim)
        elif claim.status not in REVIVABLE_CLAIM_STATUSES:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Host already holds claim {claim.id} on request {request_id}",
                code="CLAIM_EXISTS",
            )

        claim.status = ClaimStatus.PENDING_CAR
        claim.car_id = None
        claim.offered_rate = None
        claim.claimed_at = now
        claim.claim_expires_at = now + self.claim_ttl
        claim.car_assigned_at = None
        claim.released_at = None

        await self.db.commit()
        await self.db.refresh(claim)

        metrics_collector.record_claim_created()
        logger.info(
            "Claim created",
            extra={
                "claim_id": str(claim.id),
                "request_id": str(request_id),
                "host_id": str(host_id),
                "claim_expires_at": claim.claim_expires_at.isoformat(),
            }
        )
        return claim

    async def _reject_claim(self, request_id: UUID, host_id: UUID) -> None:
        """Count the failed attempt, then raise NotFound or Conflict."""
        stmt = (
            update(ReservationRequest)
            .where(ReservationRequest.id == request_id)
            .values(claim_attempts=ReservationRequest.claim_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(resource_type="reservation_request", resource_id=str(request_id))

        await self.db.commit()
        current_status = await self.db.scalar(
            select(ReservationRequest.status).where(ReservationRequest.id == request_id)
        )

        metrics_collector.record_claim_conflicted()
        logger.warning(
            "Claim rejected - request not open",
            extra={
                "request_id": str(request_id),
                "host_id": str(host_id),
                "status": current_status,
            }
        )
        raise ClaimConflictError(str(request_id), current_status)

    async def release(self, claim_id: UUID, host_id: UUID) -> RequestClaim:
        """
        Voluntarily release a claim and reopen its request.

        Raises:
            NotFoundError: If the claim does not exist
            AuthorizationError: If the caller is not the claiming host
            ExpiredError: If the claim lapsed or was already expired
            ConflictError: If the claim is no longer active
        """
        claim = await self.get_claim_by_id_or_raise(claim_id)

        if claim.host_id != host_id:
            logger.warning(
                "Claim release refused - not the claiming host",
                extra={"claim_id": str(claim_id), "host_id": str(host_id)}
            )
            raise AuthorizationError(detail="Only the claiming host may release this claim")

        await self.raise_if_lapsed(claim)

        if claim.status not in ACTIVE_CLAIM_STATUSES:
            raise ConflictError(
                detail=f"Claim {claim_id} is not active (status: {claim.status})",
                code="CLAIM_NOT_ACTIVE",
            )

        now = utcnow()
        result = await self.db.execute(
            update(RequestClaim)
            .where(RequestClaim.id == claim_id, RequestClaim.status == claim.status)
            .values(status=ClaimStatus.RELEASED, released_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictError(detail=f"Claim {claim_id} changed concurrently", retryable=True)

        await self.db.execute(
            update(ReservationRequest)
            .where(
                ReservationRequest.id == claim.request_id,
                ReservationRequest.status.in_([RequestStatus.CLAIMED, RequestStatus.CAR_ASSIGNED]),
            )
            .values(status=RequestStatus.OPEN)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        metrics_collector.record_claim_released()
        logger.info(
            "Claim released",
            extra={
                "claim_id": str(claim_id),
                "request_id": str(claim.request_id),
                "host_id": str(host_id),
            }
        )
        return await self.get_claim_by_id_or_raise(claim_id)

    async def get_claim(self, claim_id: UUID) -> RequestClaim:
        """Get a claim, expiring it first if its deadline has passed."""
        claim = await self.get_claim_by_id_or_raise(claim_id)
        if claim_is_lapsed(claim):
            await self.expire_lapsed_claims(claim.request_id)
            await self.db.commit()
            claim = await self.get_claim_by_id_or_raise(claim_id)
        return claim

    async def get_active_claim(self, request_id: UUID) -> RequestClaim | None:
        """Return the claim currently holding the request, if any."""
        await self.get_request_by_id_or_raise(request_id)
        if await self.expire_lapsed_claims(request_id):
            await self.db.commit()

        stmt = (
            select(RequestClaim)
            .where(
                RequestClaim.request_id == request_id,
                RequestClaim.status.in_(ACTIVE_CLAIM_STATUSES),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def archive_request(self, request_id: UUID, admin_notes: str | None = None) -> ReservationRequest:
        """
        Soft-delete a reservation request.

        Raises:
            NotFoundError: If the request does not exist
            ConflictError: If a host currently holds the request
        """
        reservation = await self.get_request_by_id_or_raise(request_id)
        if reservation.status == RequestStatus.ARCHIVED:
            return reservation

        if await self.expire_lapsed_claims(request_id):
            await self.db.commit()
            reservation = await self.get_request_by_id_or_raise(request_id)

        if reservation.status in (RequestStatus.CLAIMED, RequestStatus.CAR_ASSIGNED):
            raise ConflictError(
                detail=f"Reservation request {request_id} is held by a host and cannot be archived",
                code="REQUEST_CLAIMED",
            )

        reservation.status = RequestStatus.ARCHIVED
        reservation.archived_at = utcnow()
        if admin_notes:
            reservation.admin_notes = admin_notes
        await self.db.commit()

        logger.info(
            "Reservation request archived",
            extra={"request_id": str(request_id), "request_code": reservation.request_code}
        )
        return reservation

    async def search_requests(
        self, request: SearchReservationRequests
    ) -> tuple[list[ReservationRequest], str | None]:
        """Page through reservation requests ordered by id."""
        stmt = select(ReservationRequest)

        if request.status:
            stmt = stmt.where(ReservationRequest.status == request.status)
        if request.priority:
            stmt = stmt.where(ReservationRequest.priority == request.priority)
        if request.pickup_city:
            stmt = stmt.where(func.lower(ReservationRequest.pickup_city) == request.pickup_city.lower())

        if request.cursor:
            try:
                stmt = stmt.where(ReservationRequest.id > UUID(request.cursor))
            except ValueError:
                logger.warning(
                    "Invalid cursor provided in request search",
                    extra={"cursor": request.cursor}
                )

        stmt = stmt.order_by(ReservationRequest.id).limit(request.limit + 1)
        result = await self.db.execute(stmt)
        items = list(result.scalars())

        next_cursor = None
        if len(items) > request.limit:
            items = items[:-1]
            next_cursor = str(items[-1].id)

        return items, next_cursor

    async def expire_lapsed_claims(self, request_id: UUID, now: datetime | None = None) -> int:
        """
        Lazily expire lapsed PENDING_CAR claims on one request.

        Runs inside the caller's transaction; the caller decides when to
        commit. Returns the number of claims flipped.
        """
        now = now or utcnow()
        result = await self.db.execute(
            update(RequestClaim)
            .where(
                RequestClaim.request_id == request_id,
                RequestClaim.status == ClaimStatus.PENDING_CAR,
                RequestClaim.claim_expires_at < now,
            )
            .values(status=ClaimStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        expired = result.rowcount
        if expired:
            await self._reopen_request(request_id)
            metrics_collector.record_claim_expired("lazy", expired)
            logger.info(
                "Lapsed claim expired on access",
                extra={"request_id": str(request_id), "expired_count": expired}
            )
        return expired

    async def expire_claims(self, batch_size: int = 100) -> int:
        """
        Expire lapsed claims across all requests.

        Args:
            batch_size: Number of claims to process in one batch

        Returns:
            Number of claims expired
        """
        now = utcnow()
        stmt = (
            select(RequestClaim.id, RequestClaim.request_id)
            .where(
                RequestClaim.status == ClaimStatus.PENDING_CAR,
                RequestClaim.claim_expires_at < now,
            )
            .order_by(RequestClaim.claim_expires_at)
            .limit(batch_size)
        )
        rows = (await self.db.execute(stmt)).all()

        expired_count = 0
        for claim_id, request_id in rows:
            result = await self.db.execute(
                update(RequestClaim)
                .where(
                    RequestClaim.id == claim_id,
                    RequestClaim.status == ClaimStatus.PENDING_CAR,
                    RequestClaim.claim_expires_at < now,
                )
                .values(status=ClaimStatus.EXPIRED)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                await self._reopen_request(request_id)
                expired_count += 1

        if expired_count > 0:
            await self.db.commit()
            metrics_collector.record_claim_expired("sweep", expired_count)
            logger.info(
                "Claim expiration batch completed",
                extra={
                    "expired_count": expired_count,
                    "batch_size": batch_size
                }
            )

        return expired_count

    async def _reopen_request(self, request_id: UUID) -> None:
        await self.db.execute(
            update(ReservationRequest)
            .where(
                ReservationRequest.id == request_id,
                ReservationRequest.status == RequestStatus.CLAIMED,
            )
            .values(status=RequestStatus.OPEN)
            .execution_options(synchronize_session=False)
        )

    async def raise_if_lapsed(self, claim: RequestClaim) -> None:
        """
        Report an expired claim, expiring it first if its deadline just passed.

        A claim already flipped by the sweep or an earlier read is reported
        the same way as one that lapses here.
        """
        expires_at = claim.claim_expires_at
        if claim_is_lapsed(claim):
            await self.expire_lapsed_claims(claim.request_id)
            await self.db.commit()
        elif claim.status != ClaimStatus.EXPIRED:
            return
        logger.warning(
            "Claim expired before the requested action",
            extra={
                "claim_id": str(claim.id),
                "request_id": str(claim.request_id),
                "expired_at": expires_at.isoformat(),
            }
        )
        raise ExpiredError(
            resource_type="claim",
            resource_id=str(claim.id),
            expired_at=expires_at,
            code="CLAIM_EXPIRED",
        )

    async def get_request_by_id(self, request_id: UUID) -> ReservationRequest | None:
        stmt = (
            select(ReservationRequest)
            .where(ReservationRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_request_by_id_or_raise(self, request_id: UUID) -> ReservationRequest:
        reservation = await self.get_request_by_id(request_id)
        if not reservation:
            raise NotFoundError(resource_type="reservation_request", resource_id=str(request_id))
        return reservation

    async def get_request_by_code(self, code: str) -> ReservationRequest | None:
        stmt = select(ReservationRequest).where(ReservationRequest.request_code == code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_claim_by_id_or_raise(self, claim_id: UUID) -> RequestClaim:
        stmt = (
            select(RequestClaim)
            .where(RequestClaim.id == claim_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        claim = result.scalar_one_or_none()
        if not claim:
            raise NotFoundError(resource_type="claim", resource_id=str(claim_id))
        return claim

    async def get_claim_for_host(self, request_id: UUID, host_id: UUID) -> RequestClaim | None:
        stmt = (
            select(RequestClaim)
            .where(RequestClaim.request_id == request_id, RequestClaim.host_id == host_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
