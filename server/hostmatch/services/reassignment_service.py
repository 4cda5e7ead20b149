"""Reassignment service: guest-consented vehicle changes after host rejection."""

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import ConflictError, ExpiredError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking, HostReviewStatus, ReassignmentToken
from ..models.host import Vehicle
from ..schemas.reassignment import TokenState
from .assignment_service import BookingOverlapError, find_conflicting_bookings
from .expiry import token_is_lapsed
from .notifications import Notifier, deliver, get_notifier

logger = logging.getLogger(__name__)


def token_state(token: ReassignmentToken) -> TokenState:
    """Classify a consent token for display and error reporting."""
    if token.consumed_at is not None:
        return TokenState.CONSUMED
    if token.superseded_at is not None:
        return TokenState.SUPERSEDED
    if token_is_lapsed(token):
        return TokenState.EXPIRED
    return TokenState.VALID


class ReassignmentService:
    """Service for vehicle change operations."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or get_notifier()
        self.token_ttl = timedelta(hours=settings.reassignment_token_hours)

    def consent_url(self, token: ReassignmentToken) -> str:
        return f"{settings.guest_consent_base_url}?token={token.token}"

    async def initiate(
        self,
        booking_id: UUID,
        new_car_id: UUID,
        reason: str,
        actor: str,
    ) -> ReassignmentToken:
        """
        Propose a replacement vehicle and mint a guest consent token.

        Allowed when the host rejected the booking, or when the booking's
        latest token lapsed without being used.

        Raises:
            NotFoundError: If the booking or an active replacement vehicle is missing
            ConflictError: If the booking is not awaiting a vehicle change
            ValidationError: If the replacement is the current vehicle
            BookingOverlapError: If the replacement is booked over the same dates
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        latest = await self._latest_token(booking_id)

        rejected = booking.host_review_status == HostReviewStatus.REJECTED
        lapsed = latest is not None and token_state(latest) == TokenState.EXPIRED
        if not (rejected or lapsed):
            logger.warning(
                "Vehicle change refused - booking not awaiting reassignment",
                extra={
                    "booking_id": str(booking_id),
                    "host_review_status": booking.host_review_status,
                    "latest_token_state": token_state(latest) if latest else None,
                }
            )
            raise ConflictError(
                detail=(
                    f"Booking {booking_id} can only be reassigned after a host rejection "
                    "or when the previous consent request lapsed"
                ),
                code="REASSIGNMENT_NOT_ALLOWED",
            )

        vehicle = await self.db.get(Vehicle, new_car_id)
        if vehicle is None or not vehicle.is_active:
            raise NotFoundError(resource_type="vehicle", resource_id=str(new_car_id))

        if new_car_id == booking.car_id:
            raise ValidationError(
                detail="The replacement vehicle must differ from the current vehicle",
                errors={"new_car_id": str(new_car_id)},
                code="SAME_VEHICLE",
            )

        conflicts = await find_conflicting_bookings(
            self.db, new_car_id, booking.start_date, booking.end_date, exclude_booking_id=booking.id
        )
        if conflicts:
            raise BookingOverlapError(
                car_id=str(new_car_id),
                start_date=booking.start_date,
                end_date=booking.end_date,
                booking_ids=[str(b.id) for b in conflicts],
            )

        now = utcnow()
        superseded = await self.db.execute(
            update(ReassignmentToken)
            .where(
                ReassignmentToken.booking_id == booking_id,
                ReassignmentToken.consumed_at.is_(None),
                ReassignmentToken.superseded_at.is_(None),
            )
            .values(superseded_at=now)
            .execution_options(synchronize_session=False)
        )

        booking.original_car_id = booking.car_id
        booking.vehicle_change_reason = reason
        booking.host_review_status = None
        booking.host_reviewed_by = None
        booking.host_reviewed_at = None
        booking.host_review_notes = None

        token = ReassignmentToken(
            token=secrets.token_urlsafe(32),
            booking_id=booking_id,
            original_car_id=booking.car_id,
            new_car_id=new_car_id,
            reason=reason,
            issued_by=actor,
            expires_at=now + self.token_ttl,
            created_at=now,
        )
        self.db.add(token)
        await self.db.commit()
        await self.db.refresh(token)

        metrics_collector.record_token_issued()
        logger.info(
            "Vehicle change token issued",
            extra={
                "booking_id": str(booking_id),
                "token_id": str(token.id),
                "original_car_id": str(token.original_car_id),
                "new_car_id": str(new_car_id),
                "superseded_tokens": superseded.rowcount,
                "expires_at": token.expires_at.isoformat(),
                "actor": actor,
            }
        )

        consent_url = self.consent_url(token)
        await deliver(
            "vehicle_change_proposed",
            lambda: self.notifier.vehicle_change_proposed(booking, token, consent_url),
            booking_id=str(booking_id),
        )
        return token

    async def consume(self, token: str) -> Booking:
        """
        Apply the vehicle change the guest consented to.

        The token is marked consumed by a single conditional write, so a
        second consumption always fails.

        Raises:
            NotFoundError: If the token is unknown or the replacement was deactivated
            ExpiredError: If the token was consumed, superseded or lapsed
            BookingOverlapError: If the replacement was booked over the same dates;
                the token stays unconsumed in both cases
        """
        now = utcnow()
        result = await self.db.execute(
            update(ReassignmentToken)
            .where(
                ReassignmentToken.token == token,
                ReassignmentToken.consumed_at.is_(None),
                ReassignmentToken.superseded_at.is_(None),
                ReassignmentToken.expires_at >= now,
            )
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )

        record = await self.get_token_or_raise(token)
        if result.rowcount == 0:
            state = token_state(record)
            logger.warning(
                "Vehicle change token rejected",
                extra={"token_id": str(record.id), "booking_id": str(record.booking_id), "state": state}
            )
            raise ExpiredError(
                resource_type="reassignment_token",
                resource_id=str(record.id),
                expired_at=record.expires_at if state == TokenState.EXPIRED else None,
                detail=f"This vehicle change link is no longer valid ({state.value.lower()})",
                code=f"TOKEN_{state.value}",
            )

        # The replacement may have been retired or booked since the token was issued
        context = {
            "token_id": str(record.id),
            "booking_id": str(record.booking_id),
            "new_car_id": str(record.new_car_id),
        }
        vehicle = await self.db.get(Vehicle, record.new_car_id, populate_existing=True)
        if vehicle is None or not vehicle.is_active:
            await self.db.rollback()
            logger.warning("Vehicle change refused - replacement no longer available", extra=context)
            raise NotFoundError(resource_type="vehicle", resource_id=context["new_car_id"])

        booking = await self.get_booking_by_id_or_raise(record.booking_id)
        start_date, end_date = booking.start_date, booking.end_date
        conflicts = await find_conflicting_bookings(
            self.db, record.new_car_id, start_date, end_date, exclude_booking_id=booking.id
        )
        if conflicts:
            conflicting_ids = [str(b.id) for b in conflicts]
            await self.db.rollback()
            metrics_collector.record_assignment_conflict()
            logger.warning("Vehicle change refused - replacement booked in the meantime", extra=context)
            raise BookingOverlapError(
                car_id=context["new_car_id"],
                start_date=start_date,
                end_date=end_date,
                booking_ids=conflicting_ids,
            )

        booking.car_id = record.new_car_id
        booking.host_id = vehicle.host_id
        await self.db.commit()

        metrics_collector.record_token_consumed()
        logger.info(
            "Vehicle change accepted by guest",
            extra={
                "booking_id": str(booking.id),
                "token_id": str(record.id),
                "original_car_id": str(record.original_car_id),
                "new_car_id": str(record.new_car_id),
                "new_host_id": str(vehicle.host_id),
            }
        )
        return booking

    async def get_token_status(self, token: str) -> tuple[ReassignmentToken, TokenState]:
        """Read-only view of a consent token for the guest consent page."""
        record = await self.get_token_or_raise(token)
        return record, token_state(record)

    async def get_token_or_raise(self, token: str) -> ReassignmentToken:
        stmt = (
            select(ReassignmentToken)
            .where(ReassignmentToken.token == token)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        record = result.scalar_one_or_none()
        if not record:
            raise NotFoundError(resource_type="reassignment_token")
        return record

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def _latest_token(self, booking_id: UUID) -> ReassignmentToken | None:
        stmt = (
            select(ReassignmentToken)
            .where(ReassignmentToken.booking_id == booking_id)
            .order_by(ReassignmentToken.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
