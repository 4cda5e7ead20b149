"""Concurrency tests for claims, negotiation and the expiry sweep."""

import asyncio
from datetime import timedelta

import pytest
from conftest import force_claim_lapse, seed_host, seed_request
from sqlalchemy import func, select, update

from hostmatch.core.clock import utcnow
from hostmatch.core.exceptions import AuthorizationError, ConflictError
from hostmatch.models import ClaimStatus, InvitationStatus, InvitationType, ManagementInvitation, RequestClaim
from hostmatch.schemas.common import Actor
from hostmatch.schemas.invitation import SendInvitationRequest
from hostmatch.services.claim_service import ClaimConflictError, ClaimService
from hostmatch.services.negotiation_service import NegotiationService
from hostmatch.workers.expiry_sweep_worker import ExpirySweepWorker, SweepResult

pytestmark = pytest.mark.concurrency

OWNER = Actor(account_id="owner-1", email="owner@hosts.example")
MANAGER = Actor(account_id="manager-1", email="manager@hosts.example")


async def send_invitation(db) -> ManagementInvitation:
    return await NegotiationService(db).send_invitation(
        OWNER,
        SendInvitationRequest(
            invitation_type=InvitationType.OWNER_INVITES_MANAGER,
            recipient_email=MANAGER.email,
            owner_percent=70,
            manager_percent=30,
        ),
    )


@pytest.mark.asyncio
async def test_simultaneous_claims_single_winner(file_session_factory):
    """Of several hosts claiming one request at once, exactly one wins."""
    async with file_session_factory() as db:
        hosts = [await seed_host(db, name=f"Host {index}") for index in range(4)]
        reservation = await seed_request(db)

    async def claim(host_id):
        async with file_session_factory() as db:
            return await ClaimService(db).claim(reservation.id, host_id)

    results = await asyncio.gather(*(claim(host.id) for host in hosts), return_exceptions=True)

    winners = [r for r in results if isinstance(r, RequestClaim)]
    losers = [r for r in results if isinstance(r, ClaimConflictError)]
    assert len(winners) == 1
    assert len(losers) == len(hosts) - 1

    async with file_session_factory() as db:
        active = await db.scalar(
            select(func.count())
            .select_from(RequestClaim)
            .where(RequestClaim.request_id == reservation.id, RequestClaim.status == ClaimStatus.PENDING_CAR)
        )
        stored = await ClaimService(db).get_request_by_id_or_raise(reservation.id)

    assert active == 1
    assert stored.claim_attempts == len(hosts)


@pytest.mark.asyncio
async def test_reclaim_race_after_lapse(file_session_factory):
    """A lapsed claim is replaced by exactly one of the competing hosts."""
    async with file_session_factory() as db:
        first = await seed_host(db, name="First Host")
        rivals = [await seed_host(db, name=f"Rival {index}") for index in range(3)]
        reservation = await seed_request(db)
        stale = await ClaimService(db).claim(reservation.id, first.id)
        await force_claim_lapse(db, stale.id)

    async def claim(host_id):
        async with file_session_factory() as db:
            return await ClaimService(db).claim(reservation.id, host_id)

    results = await asyncio.gather(*(claim(host.id) for host in rivals), return_exceptions=True)

    assert sum(isinstance(r, RequestClaim) for r in results) == 1
    assert all(isinstance(r, (RequestClaim, ClaimConflictError)) for r in results)

    async with file_session_factory() as db:
        expired = await ClaimService(db).get_claim_by_id_or_raise(stale.id)
    assert expired.status == ClaimStatus.EXPIRED


@pytest.mark.asyncio
async def test_counter_and_accept_race(file_session_factory):
    """Concurrent responses to the same offer never both apply."""
    async with file_session_factory() as db:
        invitation = await send_invitation(db)

    async def counter():
        async with file_session_factory() as db:
            return await NegotiationService(db).counter_offer(invitation.token, MANAGER, 60, 40)

    async def accept():
        async with file_session_factory() as db:
            return await NegotiationService(db).accept(invitation.token, MANAGER)

    results = await asyncio.gather(counter(), accept(), counter(), return_exceptions=True)

    applied = [r for r in results if isinstance(r, ManagementInvitation)]
    refused = [r for r in results if isinstance(r, (ConflictError, AuthorizationError))]
    assert len(applied) == 1
    assert len(refused) == 2

    async with file_session_factory() as db:
        final = await NegotiationService(db).get_invitation(invitation.token)
    assert final.status == applied[0].status
    assert final.negotiation_rounds <= 1
    assert len(final.negotiation_history) == final.negotiation_rounds + 1


@pytest.mark.asyncio
async def test_sweep_worker_expires_lapsed_records(session_factory, test_session):
    host = await seed_host(test_session)
    reservation = await seed_request(test_session)
    claim = await ClaimService(test_session).claim(reservation.id, host.id)
    await force_claim_lapse(test_session, claim.id)
    invitation = await send_invitation(test_session)
    await test_session.execute(
        update(ManagementInvitation)
        .where(ManagementInvitation.id == invitation.id)
        .values(expires_at=utcnow() - timedelta(seconds=1))
    )
    await test_session.commit()

    worker = ExpirySweepWorker(interval_seconds=60, batch_size=10, session_factory=session_factory)

    assert await worker.process() == SweepResult(claims_expired=1, invitations_expired=1)
    assert await worker.process() == SweepResult(claims_expired=0, invitations_expired=0)

    assert (await ClaimService(test_session).get_claim_by_id_or_raise(claim.id)).status == ClaimStatus.EXPIRED
    stored = await NegotiationService(test_session).get_invitation_by_token_or_raise(invitation.token)
    assert stored.status == InvitationStatus.EXPIRED


@pytest.mark.asyncio
async def test_sweep_worker_runs_until_stopped(session_factory):
    worker = ExpirySweepWorker(interval_seconds=1, session_factory=session_factory)

    await worker.start()
    assert worker.is_running
    await asyncio.sleep(0.1)
    await worker.stop()

    assert not worker.is_running
