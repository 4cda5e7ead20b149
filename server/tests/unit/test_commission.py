"""Unit tests for commission resolution and the commission audit trail."""

import pytest

from hostmatch.core.exceptions import NotFoundError, ValidationError
from hostmatch.services.commission_service import (
    INITIAL_RATE_REASON,
    CommissionService,
    initial_commission_rate,
    resolve_commission,
)


@pytest.mark.parametrize(
    "path,tier,rate,payout",
    [
        ("insurance", None, 0.60, 0.40),
        ("tiers", "p2p", 0.25, 0.75),
        ("tiers", "commercial", 0.10, 0.90),
        ("tiers", "self_manage", 0.25, 0.75),
        ("  Tiers ", "COMMERCIAL", 0.10, 0.90),
        ("insurance", "", 0.60, 0.40),
    ],
)
def test_resolve_commission_table(path, tier, rate, payout):
    resolution = resolve_commission(path, tier)
    assert resolution.rate == rate
    assert resolution.payout_percentage == payout


@pytest.mark.parametrize(
    "path,tier",
    [
        ("tiers", None),
        ("insurance", "p2p"),
        ("tiers", "gold"),
        (None, None),
        ("subscription", None),
    ],
)
def test_resolve_commission_rejects_unknown_combinations(path, tier):
    with pytest.raises(ValidationError) as exc_info:
        resolve_commission(path, tier)
    assert exc_info.value.code == "INVALID_COMMISSION_PATH"
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize(
    "fleet_size,rate",
    [(0, 0.25), (9, 0.25), (10, 0.20), (49, 0.20), (50, 0.15), (99, 0.15), (100, 0.10), (5000, 0.10)],
)
def test_initial_commission_rate_thresholds(fleet_size, rate):
    assert initial_commission_rate(fleet_size) == rate


def test_initial_commission_rate_rejects_negative_fleet():
    with pytest.raises(ValidationError):
        initial_commission_rate(-1)


@pytest.mark.asyncio
async def test_approve_host_sets_fleet_default_and_audits(test_session, host):
    service = CommissionService(test_session)

    approved = await service.approve_host(host.id, fleet_size=55, actor="ops@platform")

    assert approved.commission_rate == 0.15
    assert approved.approved_at is not None

    entries = await service.list_audit_entries(host.id)
    assert len(entries) == 1
    assert entries[0].old_rate is None
    assert entries[0].new_rate == 0.15
    assert entries[0].reason == INITIAL_RATE_REASON
    assert entries[0].actor == "ops@platform"


@pytest.mark.asyncio
async def test_approve_host_keeps_explicit_choice(test_session, host):
    service = CommissionService(test_session)
    await service.apply_commission(host.id, "tiers", "commercial", actor="host")

    approved = await service.approve_host(host.id, fleet_size=3, actor="ops@platform")

    assert approved.commission_rate == 0.10
    entries = await service.list_audit_entries(host.id)
    assert [entry.reason for entry in entries] == ["path_selection"]


@pytest.mark.asyncio
async def test_apply_commission_records_old_and_new_rate(test_session, host):
    service = CommissionService(test_session)
    await service.apply_commission(host.id, "tiers", "p2p", actor="host")

    updated, entry = await service.apply_commission(
        host.id, "insurance", None, actor="support", reason="host switched to insurance plan"
    )

    assert updated.commission_rate == 0.60
    assert updated.commission_path == "insurance"
    assert updated.commission_tier is None
    assert entry.old_rate == 0.25
    assert entry.new_rate == 0.60
    assert entry.reason == "host switched to insurance plan"

    entries = await service.list_audit_entries(host.id)
    assert [e.new_rate for e in entries] == [0.25, 0.60]


@pytest.mark.asyncio
async def test_apply_commission_invalid_path_changes_nothing(test_session, host):
    service = CommissionService(test_session)

    with pytest.raises(ValidationError):
        await service.apply_commission(host.id, "tiers", "platinum", actor="host")

    assert await service.list_audit_entries(host.id) == []
    refreshed = await service.get_host_or_raise(host.id)
    assert refreshed.commission_rate is None


@pytest.mark.asyncio
async def test_unknown_host(test_session):
    from uuid import uuid4

    with pytest.raises(NotFoundError):
        await CommissionService(test_session).approve_host(uuid4(), fleet_size=1, actor="ops")
