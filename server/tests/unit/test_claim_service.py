"""Unit tests for request intake, claiming, release and claim expiry."""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from conftest import force_claim_lapse, seed_request

from hostmatch.core.exceptions import AuthorizationError, ConflictError, ExpiredError, NotFoundError
from hostmatch.models import ClaimStatus, RequestPriority, RequestStatus
from hostmatch.schemas.request import CreateReservationRequest, SearchReservationRequests
from hostmatch.services.claim_service import ClaimConflictError, ClaimService


@pytest.mark.asyncio
class TestCreateRequest:
    """Tests for reservation request intake."""

    async def test_create_request_opens_with_code_and_duration(self, test_session):
        service = ClaimService(test_session)

        reservation = await service.create_request(
            CreateReservationRequest(
                guest_name="Dana Reyes",
                vehicle_type="SUV",
                start_date=date(2030, 7, 1),
                end_date=date(2030, 7, 5),
                priority=RequestPriority.HIGH,
            )
        )

        assert reservation.status == RequestStatus.OPEN
        assert reservation.request_code.startswith("REQ-")
        assert len(reservation.request_code) == 10
        assert reservation.duration_days == 4
        assert reservation.claim_attempts == 0

    async def test_same_day_request_lasts_one_day(self, test_session):
        reservation = await ClaimService(test_session).create_request(
            CreateReservationRequest(guest_name="Sam", start_date=date(2030, 7, 1), end_date=date(2030, 7, 1))
        )
        assert reservation.duration_days == 1

    async def test_undated_request_has_no_duration(self, test_session):
        reservation = await ClaimService(test_session).create_request(CreateReservationRequest(guest_name="Sam"))
        assert reservation.duration_days is None


def test_request_dates_must_come_in_pairs():
    with pytest.raises(ValueError):
        CreateReservationRequest(guest_name="Sam", start_date=date(2030, 7, 1))


def test_request_end_before_start_rejected():
    with pytest.raises(ValueError):
        CreateReservationRequest(guest_name="Sam", start_date=date(2030, 7, 5), end_date=date(2030, 7, 1))


@pytest.mark.asyncio
class TestClaim:
    """Tests for claiming and releasing requests."""

    async def test_claim_open_request(self, test_session, host, open_request):
        service = ClaimService(test_session)

        claim = await service.claim(open_request.id, host.id)

        assert claim.status == ClaimStatus.PENDING_CAR
        assert claim.host_id == host.id
        assert claim.car_id is None
        assert claim.claim_expires_at - claim.claimed_at == timedelta(minutes=30)

        reservation = await service.get_request_by_id_or_raise(open_request.id)
        assert reservation.status == RequestStatus.CLAIMED
        assert reservation.claim_attempts == 1

    async def test_second_host_gets_conflict(self, test_session, host, other_host, open_request):
        service = ClaimService(test_session)
        await service.claim(open_request.id, host.id)

        with pytest.raises(ClaimConflictError) as exc_info:
            await service.claim(open_request.id, other_host.id)

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "ALREADY_CLAIMED"
        assert exc_info.value.retryable is True

        reservation = await service.get_request_by_id_or_raise(open_request.id)
        assert reservation.status == RequestStatus.CLAIMED
        assert reservation.claim_attempts == 2

        active = await service.get_active_claim(open_request.id)
        assert active.host_id == host.id

    async def test_claim_unknown_request(self, test_session, host):
        with pytest.raises(NotFoundError):
            await ClaimService(test_session).claim(uuid4(), host.id)

    async def test_claim_unknown_host_leaves_request_open(self, test_session, open_request):
        service = ClaimService(test_session)

        with pytest.raises(NotFoundError):
            await service.claim(open_request.id, uuid4())

        reservation = await service.get_request_by_id_or_raise(open_request.id)
        assert reservation.status == RequestStatus.OPEN
        assert reservation.claim_attempts == 0

    async def test_release_reopens_request(self, test_session, host, other_host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)

        released = await service.release(claim.id, host.id)

        assert released.status == ClaimStatus.RELEASED
        assert released.released_at is not None
        reservation = await service.get_request_by_id_or_raise(open_request.id)
        assert reservation.status == RequestStatus.OPEN

        # Anyone may claim again, including the host who released
        again = await service.claim(open_request.id, host.id)
        assert again.id == claim.id
        assert again.status == ClaimStatus.PENDING_CAR
        assert again.released_at is None

    async def test_release_by_other_host_refused(self, test_session, host, other_host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)

        with pytest.raises(AuthorizationError):
            await service.release(claim.id, other_host.id)

    async def test_release_twice_conflicts(self, test_session, host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)
        await service.release(claim.id, host.id)

        with pytest.raises(ConflictError) as exc_info:
            await service.release(claim.id, host.id)
        assert exc_info.value.code == "CLAIM_NOT_ACTIVE"


@pytest.mark.asyncio
class TestClaimExpiry:
    """Tests for lazy and swept claim expiry."""

    async def test_lapsed_claim_expires_on_next_claim(self, test_session, host, other_host, open_request):
        service = ClaimService(test_session)
        first = await service.claim(open_request.id, host.id)
        await force_claim_lapse(test_session, first.id)

        second = await service.claim(open_request.id, other_host.id)

        assert second.host_id == other_host.id
        assert second.status == ClaimStatus.PENDING_CAR
        expired = await service.get_claim_by_id_or_raise(first.id)
        assert expired.status == ClaimStatus.EXPIRED

    async def test_get_claim_expires_lapsed_claim(self, test_session, host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)
        await force_claim_lapse(test_session, claim.id)

        fetched = await service.get_claim(claim.id)

        assert fetched.status == ClaimStatus.EXPIRED
        reservation = await service.get_request_by_id_or_raise(open_request.id)
        assert reservation.status == RequestStatus.OPEN

    async def test_get_active_claim_none_after_lapse(self, test_session, host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)
        await force_claim_lapse(test_session, claim.id)

        assert await service.get_active_claim(open_request.id) is None

    async def test_release_of_lapsed_claim_reports_expiry(self, test_session, host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)
        await force_claim_lapse(test_session, claim.id)

        with pytest.raises(ExpiredError) as exc_info:
            await service.release(claim.id, host.id)

        assert exc_info.value.code == "CLAIM_EXPIRED"
        # The flip to EXPIRED is kept even though the release failed
        stored = await service.get_claim_by_id_or_raise(claim.id)
        assert stored.status == ClaimStatus.EXPIRED

    async def test_release_after_sweep_reports_expiry(self, test_session, host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)
        await force_claim_lapse(test_session, claim.id)
        await service.expire_claims()

        with pytest.raises(ExpiredError) as exc_info:
            await service.release(claim.id, host.id)

        assert exc_info.value.status_code == 410
        assert exc_info.value.code == "CLAIM_EXPIRED"

    async def test_sweep_expires_only_lapsed_claims(self, test_session, host):
        service = ClaimService(test_session)
        stale = await seed_request(test_session, code="REQ-STALE1")
        fresh = await seed_request(test_session, code="REQ-FRESH1")
        stale_claim = await service.claim(stale.id, host.id)
        fresh_claim = await service.claim(fresh.id, host.id)
        await force_claim_lapse(test_session, stale_claim.id)

        assert await service.expire_claims() == 1
        assert await service.expire_claims() == 0

        assert (await service.get_claim_by_id_or_raise(stale_claim.id)).status == ClaimStatus.EXPIRED
        assert (await service.get_claim_by_id_or_raise(fresh_claim.id)).status == ClaimStatus.PENDING_CAR
        assert (await service.get_request_by_id_or_raise(stale.id)).status == RequestStatus.OPEN
        assert (await service.get_request_by_id_or_raise(fresh.id)).status == RequestStatus.CLAIMED


@pytest.mark.asyncio
class TestArchiveAndSearch:
    """Tests for archiving and paging through requests."""

    async def test_archive_open_request(self, test_session, open_request):
        service = ClaimService(test_session)

        archived = await service.archive_request(open_request.id, admin_notes="Duplicate")

        assert archived.status == RequestStatus.ARCHIVED
        assert archived.archived_at is not None
        assert archived.admin_notes == "Duplicate"

    async def test_archive_claimed_request_refused(self, test_session, host, open_request):
        service = ClaimService(test_session)
        await service.claim(open_request.id, host.id)

        with pytest.raises(ConflictError) as exc_info:
            await service.archive_request(open_request.id)
        assert exc_info.value.code == "REQUEST_CLAIMED"

    async def test_archive_after_claim_lapse(self, test_session, host, open_request):
        service = ClaimService(test_session)
        claim = await service.claim(open_request.id, host.id)
        await force_claim_lapse(test_session, claim.id)

        archived = await service.archive_request(open_request.id)
        assert archived.status == RequestStatus.ARCHIVED

    async def test_search_pages_by_cursor(self, test_session):
        for index in range(3):
            await seed_request(test_session, code=f"REQ-PAGE0{index}")
        service = ClaimService(test_session)

        first_page, cursor = await service.search_requests(SearchReservationRequests(limit=2))
        assert len(first_page) == 2
        assert cursor is not None

        second_page, cursor = await service.search_requests(SearchReservationRequests(limit=2, cursor=cursor))
        assert len(second_page) == 1
        assert cursor is None

        codes = {r.request_code for r in first_page + second_page}
        assert codes == {"REQ-PAGE00", "REQ-PAGE01", "REQ-PAGE02"}

    async def test_search_filters_by_status(self, test_session, host, open_request):
        service = ClaimService(test_session)
        await service.claim(open_request.id, host.id)

        open_items, _ = await service.search_requests(SearchReservationRequests())
        claimed_items, _ = await service.search_requests(SearchReservationRequests(status=RequestStatus.CLAIMED))

        assert open_items == []
        assert [r.id for r in claimed_items] == [open_request.id]
