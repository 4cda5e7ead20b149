"""Host settings router: deposits and program eligibility."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentActor
from ..schemas.commission import (
    DepositSettingsOut,
    UpdateDepositSettingsRequest,
    VehicleDepositOut,
    VehicleDepositRequest,
)
from ..schemas.common import PROBLEM_RESPONSES, Actor
from ..schemas.eligibility import EligibilityOut, HostStats
from ..services.deposit_service import DepositService
from ..services.eligibility import LOSS_OF_USE_RULE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/host", tags=["host"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/deposits", response_model=DepositSettingsOut)
async def update_deposit_settings(
    request: UpdateDepositSettingsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> DepositSettingsOut:
    """
    Store a host's default and per-make deposits.

    Amounts are rounded to the nearest $25 with a $25 floor; per-make entries
    under $25 are dropped and reported back in ``rejected_makes``.
    """
    result = await DepositService(db).update_settings(
        request.host_id,
        request.default_deposit,
        request.make_deposits,
    )
    return DepositSettingsOut(
        host_id=request.host_id,
        default_deposit=result.default_deposit,
        make_deposits=result.make_deposits,
        rejected_makes=result.rejected_makes,
    )


@router.post("/vehicle-deposit", response_model=VehicleDepositOut)
async def vehicle_deposit(
    request: VehicleDepositRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> VehicleDepositOut:
    """Resolve the deposit for a vehicle from its own, per-make, host or class default."""
    vehicle, deposit = await DepositService(db).get_vehicle_deposit(request.vehicle_id)
    return VehicleDepositOut(vehicle_id=vehicle.id, deposit_mode=vehicle.deposit_mode, deposit=deposit)


@router.post("/eligibility", response_model=EligibilityOut)
async def loss_of_use_eligibility(
    request: HostStats,
    actor: Actor = CurrentActor,
) -> EligibilityOut:
    """Evaluate a host's record against the loss-of-use protection rule."""
    result = LOSS_OF_USE_RULE.evaluate(request)

    logger.info(
        "Loss-of-use eligibility evaluated",
        extra={
            "account_id": actor.account_id,
            "eligible": result.eligible,
            "path": result.path,
        }
    )

    return EligibilityOut(eligible=result.eligible, path=result.path, reasons=result.reasons)
