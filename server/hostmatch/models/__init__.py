"""Models module exporting all database models."""

from .booking import BLOCKING_BOOKING_STATUSES, Booking, BookingStatus, HostReviewStatus, ReassignmentToken
from .claim import ACTIVE_CLAIM_STATUSES, ClaimStatus, RequestClaim
from .commission import CommissionAuditEntry
from .host import DepositMode, Host, Vehicle
from .invitation import InvitationStatus, InvitationType, ManagementInvitation
from .reservation_request import RequestPriority, RequestStatus, ReservationRequest

__all__ = [
    # Supply
    "Host",
    "Vehicle",
    "DepositMode",

    # Demand and claims
    "ReservationRequest",
    "RequestStatus",
    "RequestPriority",
    "RequestClaim",
    "ClaimStatus",
    "ACTIVE_CLAIM_STATUSES",

    # Bookings and vehicle changes
    "Booking",
    "BookingStatus",
    "HostReviewStatus",
    "BLOCKING_BOOKING_STATUSES",
    "ReassignmentToken",

    # Management negotiation
    "ManagementInvitation",
    "InvitationStatus",
    "InvitationType",

    # Audit
    "CommissionAuditEntry",
]
