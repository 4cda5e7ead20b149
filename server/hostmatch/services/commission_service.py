"""Commission resolution and the host commission audit trail."""

import logging
from typing import NamedTuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import NotFoundError, ValidationError
from ..models.commission import CommissionAuditEntry
from ..models.host import Host

logger = logging.getLogger(__name__)

INSURANCE_PATH = "insurance"
TIERS_PATH = "tiers"

# (path, tier) -> platform commission rate
COMMISSION_TABLE: dict[tuple[str, str | None], float] = {
    (INSURANCE_PATH, None): 0.60,
    (TIERS_PATH, "p2p"): 0.25,
    (TIERS_PATH, "commercial"): 0.10,
    (TIERS_PATH, "self_manage"): 0.25,
}

# Fleet size thresholds for the default rate, largest first
FLEET_RATE_THRESHOLDS: tuple[tuple[int, float], ...] = (
    (100, 0.10),
    (50, 0.15),
    (10, 0.20),
)
BASE_COMMISSION_RATE = 0.25

INITIAL_RATE_REASON = "initial_fleet_default"


class CommissionResolution(NamedTuple):
    """Platform commission rate and the host's payout share."""

    rate: float
    payout_percentage: float


def _normalize(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def resolve_commission(path: str | None, tier: str | None) -> CommissionResolution:
    """
    Map a declared monetization path/tier to a commission rate.

    Args:
        path: ``insurance`` or ``tiers``
        tier: tier within ``tiers`` (``p2p``, ``commercial``, ``self_manage``);
            must be empty for ``insurance``

    Returns:
        CommissionResolution: rate and payout percentage (``1 - rate``)

    Raises:
        ValidationError: If the combination is not recognised
    """
    key = (_normalize(path), _normalize(tier))
    rate = COMMISSION_TABLE.get(key)
    if rate is None:
        raise ValidationError(
            detail=f"Unknown commission path/tier combination: {path!r}/{tier!r}",
            errors={"path": path, "tier": tier},
            code="INVALID_COMMISSION_PATH",
        )
    return CommissionResolution(rate=rate, payout_percentage=round(1 - rate, 4))


def initial_commission_rate(fleet_size: int) -> float:
    """Default commission rate for a newly approved host, by fleet size."""
    if fleet_size < 0:
        raise ValidationError(
            detail="Fleet size cannot be negative",
            errors={"fleet_size": fleet_size},
        )
    for threshold, rate in FLEET_RATE_THRESHOLDS:
        if fleet_size >= threshold:
            return rate
    return BASE_COMMISSION_RATE


class CommissionService:
    """Service for host commission changes and their audit trail."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_host_or_raise(self, host_id: UUID) -> Host:
        host = await self.db.get(Host, host_id)
        if not host:
            raise NotFoundError(resource_type="host", resource_id=str(host_id))
        return host

    async def approve_host(self, host_id: UUID, fleet_size: int, actor: str) -> Host:
        """
        Approve a host and apply the fleet-size default rate.

        The default only applies when the host has not already declared a
        path/tier; an explicit choice always wins.
        """
        rate = initial_commission_rate(fleet_size)
        host = await self.get_host_or_raise(host_id)

        if host.approved_at is None:
            host.approved_at = utcnow()

        if host.commission_path is None and host.commission_tier is None:
            old_rate = host.commission_rate
            host.commission_rate = rate
            self._record_audit(
                host_id=host.id,
                old_rate=old_rate,
                new_rate=rate,
                path=None,
                tier=None,
                reason=INITIAL_RATE_REASON,
                actor=actor,
            )
        else:
            logger.info(
                "Host approved with explicit commission choice, default rate skipped",
                extra={
                    "host_id": str(host.id),
                    "commission_path": host.commission_path,
                    "commission_tier": host.commission_tier,
                }
            )

        await self.db.commit()

        logger.info(
            "Host approved",
            extra={
                "host_id": str(host.id),
                "fleet_size": fleet_size,
                "commission_rate": host.commission_rate,
                "actor": actor,
            }
        )
        return host

    async def apply_commission(
        self,
        host_id: UUID,
        path: str | None,
        tier: str | None,
        actor: str,
        reason: str = "path_selection",
    ) -> tuple[Host, CommissionAuditEntry]:
        """
        Resolve a path/tier choice, store the new rate and audit the change.

        Raises:
            ValidationError: If the combination is not recognised
            NotFoundError: If the host does not exist
        """
        resolution = resolve_commission(path, tier)
        host = await self.get_host_or_raise(host_id)

        old_rate = host.commission_rate
        host.commission_rate = resolution.rate
        host.commission_path = _normalize(path)
        host.commission_tier = _normalize(tier)

        entry = self._record_audit(
            host_id=host.id,
            old_rate=old_rate,
            new_rate=resolution.rate,
            path=host.commission_path,
            tier=host.commission_tier,
            reason=reason,
            actor=actor,
        )
        await self.db.commit()

        logger.info(
            "Commission rate changed",
            extra={
                "host_id": str(host.id),
                "old_rate": old_rate,
                "new_rate": resolution.rate,
                "path": host.commission_path,
                "tier": host.commission_tier,
                "actor": actor,
                "reason": reason,
            }
        )
        return host, entry

    async def list_audit_entries(self, host_id: UUID) -> list[CommissionAuditEntry]:
        """Commission history of a host, oldest first."""
        await self.get_host_or_raise(host_id)
        stmt = (
            select(CommissionAuditEntry)
            .where(CommissionAuditEntry.host_id == host_id)
            .order_by(CommissionAuditEntry.created_at, CommissionAuditEntry.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    def _record_audit(
        self,
        host_id: UUID,
        old_rate: float | None,
        new_rate: float,
        path: str | None,
        tier: str | None,
        reason: str,
        actor: str,
    ) -> CommissionAuditEntry:
        entry = CommissionAuditEntry(
            host_id=host_id,
            old_rate=old_rate,
            new_rate=new_rate,
            path=path,
            tier=tier,
            reason=reason,
            actor=actor,
        )
        self.db.add(entry)
        return entry
