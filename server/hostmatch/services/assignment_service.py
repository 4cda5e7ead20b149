"""Assignment service: attaching a host vehicle to a claimed request."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import ConflictError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import BLOCKING_BOOKING_STATUSES, Booking
from ..models.claim import ClaimStatus, RequestClaim
from ..models.host import Vehicle
from ..models.reservation_request import RequestStatus, ReservationRequest
from .claim_service import ClaimService

logger = logging.getLogger(__name__)


class BookingOverlapError(ConflictError):
    """Exception when a vehicle is already booked over the requested dates."""

    def __init__(self, car_id: str, start_date: date, end_date: date, booking_ids: list[str]):
        super().__init__(
            detail=(
                f"Vehicle {car_id} is already booked between "
                f"{start_date.isoformat()} and {end_date.isoformat()}"
            ),
            conflicting_resource={
                "car_id": car_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "booking_ids": booking_ids,
            },
            code="VEHICLE_UNAVAILABLE",
        )


async def find_conflicting_bookings(
    db: AsyncSession,
    car_id: UUID,
    start_date: date,
    end_date: date,
    exclude_booking_id: UUID | None = None,
) -> list[Booking]:
    """
    Bookings on ``car_id`` that occupy any day of [start_date, end_date].

    Two inclusive ranges overlap iff each starts no later than the other ends.
    Only PENDING, CONFIRMED and ACTIVE bookings block the vehicle.
    """
    stmt = select(Booking).where(
        Booking.car_id == car_id,
        Booking.status.in_(BLOCKING_BOOKING_STATUSES),
        Booking.start_date <= end_date,
        Booking.end_date >= start_date,
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(Booking.id != exclude_booking_id)

    result = await db.execute(stmt.order_by(Booking.start_date))
    return list(result.scalars())


class AssignmentService:
    """Service for car assignment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.claim_service = ClaimService(db)

    async def assign_car(
        self,
        request_id: UUID,
        host_id: UUID,
        car_id: UUID,
        offered_rate: float | None = None,
    ) -> RequestClaim:
        """
        Assign one of the host's vehicles to their pending claim.

        Args:
            request_id: Claimed reservation request
            host_id: Host holding the claim
            car_id: Vehicle to assign
            offered_rate: Daily rate; defaults to the vehicle's daily rate

        Returns:
            Claim in CAR_SELECTED status

        Raises:
            NotFoundError: If the request, the caller's claim or the vehicle is missing
            ExpiredError: If the claim lapsed or was already expired; the request is reopened
            ConflictError: If the claim is not waiting for a car
            BookingOverlapError: If the vehicle is booked over the request dates
        """
        reservation = await self.claim_service.get_request_by_id_or_raise(request_id)
        claim = await self.claim_service.get_claim_for_host(request_id, host_id)

        if claim is None:
            # A lapsed claim of another host still has to reopen the request
            if await self.claim_service.expire_lapsed_claims(request_id):
                await self.db.commit()
            raise NotFoundError(
                resource_type="claim",
                detail=f"Host {host_id} holds no claim on request {request_id}",
            )

        await self.claim_service.raise_if_lapsed(claim)

        if claim.status != ClaimStatus.PENDING_CAR:
            logger.warning(
                "Car assignment refused - claim not pending",
                extra={
                    "claim_id": str(claim.id),
                    "request_id": str(request_id),
                    "status": claim.status,
                }
            )
            raise ConflictError(
                detail=f"Claim {claim.id} is not waiting for a car (status: {claim.status})",
                code="CLAIM_NOT_PENDING",
            )

        vehicle = await self.db.get(Vehicle, car_id)
        if vehicle is None or vehicle.host_id != host_id or not vehicle.is_active:
            raise NotFoundError(
                resource_type="vehicle",
                resource_id=str(car_id),
                detail=f"Active vehicle {car_id} owned by host {host_id} could not be found",
            )

        if reservation.has_date_range:
            conflicts = await find_conflicting_bookings(
                self.db, car_id, reservation.start_date, reservation.end_date
            )
            if conflicts:
                metrics_collector.record_assignment_conflict()
                logger.warning(
                    "Car assignment refused - overlapping booking",
                    extra={
                        "claim_id": str(claim.id),
                        "car_id": str(car_id),
                        "conflicting_bookings": [str(b.id) for b in conflicts],
                    }
                )
                raise BookingOverlapError(
                    car_id=str(car_id),
                    start_date=reservation.start_date,
                    end_date=reservation.end_date,
                    booking_ids=[str(b.id) for b in conflicts],
                )

        now = utcnow()
        rate = offered_rate if offered_rate is not None else vehicle.daily_rate

        result = await self.db.execute(
            update(RequestClaim)
            .where(
                RequestClaim.id == claim.id,
                RequestClaim.status == ClaimStatus.PENDING_CAR,
                RequestClaim.claim_expires_at >= now,
            )
            .values(
                status=ClaimStatus.CAR_SELECTED,
                car_id=car_id,
                car_assigned_at=now,
                offered_rate=rate,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Claim {claim.id} changed while assigning a car",
                code="CLAIM_CHANGED",
                retryable=True,
            )

        result = await self.db.execute(
            update(ReservationRequest)
            .where(
                ReservationRequest.id == request_id,
                ReservationRequest.status == RequestStatus.CLAIMED,
            )
            .values(status=RequestStatus.CAR_ASSIGNED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Reservation request {request_id} is no longer claimed",
                code="REQUEST_NOT_CLAIMED",
            )

        await self.db.commit()

        metrics_collector.record_car_assigned()
        logger.info(
            "Car assigned to claim",
            extra={
                "claim_id": str(claim.id),
                "request_id": str(request_id),
                "host_id": str(host_id),
                "car_id": str(car_id),
                "offered_rate": rate,
            }
        )
        return await self.claim_service.get_claim_by_id_or_raise(claim.id)
