"""Service layer package."""

from .assignment_service import AssignmentService, BookingOverlapError
from .claim_service import ClaimConflictError, ClaimService
from .commission_service import CommissionService
from .deposit_service import DepositService
from .negotiation_service import NegotiationService
from .reassignment_service import ReassignmentService

__all__ = [
    "AssignmentService",
    "BookingOverlapError",
    "ClaimConflictError",
    "ClaimService",
    "CommissionService",
    "DepositService",
    "NegotiationService",
    "ReassignmentService",
]
