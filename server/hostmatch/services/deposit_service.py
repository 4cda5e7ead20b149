"""Security deposit normalization and host deposit settings."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, NamedTuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..models.host import DepositMode, Host, Vehicle

logger = logging.getLogger(__name__)

DEPOSIT_INCREMENT = Decimal(25)
MINIMUM_DEPOSIT = 25

# Fallback deposits by daily rate when neither host nor vehicle sets one
CLASS_DEFAULT_DEPOSITS: tuple[tuple[float, int], ...] = (
    (150, 250),   # economy
    (500, 700),   # luxury
)
EXOTIC_DEFAULT_DEPOSIT = 1000


class DepositSettings(NamedTuple):
    """Normalized deposit settings after an update."""

    default_deposit: int | None
    make_deposits: dict[str, int]
    rejected_makes: dict[str, float]


def normalize_deposit(amount: float | int | Decimal) -> int:
    """
    Round a deposit to the nearest $25 (half up), never below $25.

    >>> normalize_deposit(130)
    125
    >>> normalize_deposit(26)
    25
    """
    value = Decimal(str(amount))
    if value < 0:
        raise ValidationError(detail="Deposit amount cannot be negative", errors={"amount": str(amount)})
    steps = (value / DEPOSIT_INCREMENT).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(MINIMUM_DEPOSIT, int(steps * DEPOSIT_INCREMENT))


def normalize_make_deposits(
    make_deposits: Mapping[str, float | int | Decimal],
) -> tuple[dict[str, int], dict[str, float]]:
    """
    Normalize per-make deposit overrides.

    Entries below the minimum are dropped rather than raised to the floor.

    Returns:
        (accepted, rejected): normalized overrides and the dropped raw values
    """
    accepted: dict[str, int] = {}
    rejected: dict[str, float] = {}
    for make, amount in make_deposits.items():
        name = make.strip()
        if not name or Decimal(str(amount)) < MINIMUM_DEPOSIT:
            rejected[make] = float(amount)
            continue
        accepted[name] = normalize_deposit(amount)
    return accepted, rejected


def class_default_deposit(daily_rate: float) -> int:
    for ceiling, deposit in CLASS_DEFAULT_DEPOSITS:
        if daily_rate < ceiling:
            return deposit
    return EXOTIC_DEFAULT_DEPOSIT


def resolve_vehicle_deposit(vehicle: Vehicle, host: Host) -> int:
    """
    Deposit a guest pays for ``vehicle``.

    INDIVIDUAL vehicles use their own amount, NONE means no deposit, and
    GLOBAL vehicles use the host's per-make override, then the host default,
    then the class default for the vehicle's daily rate.
    """
    if vehicle.deposit_mode == DepositMode.NONE:
        return 0

    if vehicle.deposit_mode == DepositMode.INDIVIDUAL:
        if vehicle.deposit_amount is not None:
            return vehicle.deposit_amount
        return class_default_deposit(vehicle.daily_rate or 0)

    overrides = host.make_deposits or {}
    if vehicle.make in overrides:
        return int(overrides[vehicle.make])
    if host.default_deposit is not None:
        return host.default_deposit
    return class_default_deposit(vehicle.daily_rate or 0)


class DepositService:
    """Service for host deposit settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_settings(
        self,
        host_id: UUID,
        default_deposit: float | None,
        make_deposits: Mapping[str, float],
    ) -> DepositSettings:
        """Normalize and persist a host's deposit settings."""
        host = await self.db.get(Host, host_id)
        if not host:
            raise NotFoundError(resource_type="host", resource_id=str(host_id))

        normalized_default = normalize_deposit(default_deposit) if default_deposit is not None else None
        accepted, rejected = normalize_make_deposits(make_deposits)

        host.default_deposit = normalized_default
        host.make_deposits = accepted
        await self.db.commit()

        if rejected:
            logger.warning(
                "Per-make deposits below minimum were dropped",
                extra={
                    "host_id": str(host_id),
                    "rejected_makes": sorted(rejected),
                    "minimum": MINIMUM_DEPOSIT,
                }
            )
        logger.info(
            "Deposit settings updated",
            extra={
                "host_id": str(host_id),
                "default_deposit": normalized_default,
                "make_count": len(accepted),
            }
        )

        return DepositSettings(
            default_deposit=normalized_default,
            make_deposits=accepted,
            rejected_makes=rejected,
        )

    async def get_vehicle_deposit(self, vehicle_id: UUID) -> tuple[Vehicle, int]:
        """Look up a vehicle and the deposit its guests are charged."""
        vehicle = await self.db.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFoundError(resource_type="vehicle", resource_id=str(vehicle_id))
        host = await self.db.get(Host, vehicle.host_id)
        return vehicle, resolve_vehicle_deposit(vehicle, host)
