"""Integration tests for API endpoints."""

from uuid import uuid4

import pytest
from conftest import auth_headers, seed_booking, seed_vehicle

from hostmatch.core.dependencies import get_current_notifier
from hostmatch.models import HostReviewStatus

ADMIN = auth_headers("ops-admin", "ops@hostmatch.example")


def host_headers(host) -> dict[str, str]:
    return auth_headers(str(host.id), host.email)


@pytest.mark.asyncio
async def test_claim_and_assign_flow(test_client, host, other_host, vehicle):
    """Two hosts race for one request; the winner assigns a car."""
    response = await test_client.post(
        "/v1/requests/create",
        json={
            "guest_name": "Dana Reyes",
            "vehicle_type": "Sedan",
            "start_date": "2030-07-01",
            "end_date": "2030-07-05",
            "pickup_city": "Miami",
        },
        headers=ADMIN,
    )
    assert response.status_code == 201
    reservation = response.json()
    assert reservation["status"] == "OPEN"
    assert reservation["duration_days"] == 4
    request_id = reservation["id"]

    response = await test_client.post(
        "/v1/claims/claim", json={"request_id": request_id}, headers=host_headers(host)
    )
    assert response.status_code == 201
    claim = response.json()
    assert claim["status"] == "PENDING_CAR"

    response = await test_client.post(
        "/v1/claims/claim", json={"request_id": request_id}, headers=host_headers(other_host)
    )
    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    problem = response.json()
    assert problem["code"] == "ALREADY_CLAIMED"
    assert problem["retryable"] is True

    response = await test_client.post(
        "/v1/claims/assign",
        json={"request_id": request_id, "car_id": str(vehicle.id)},
        headers=host_headers(host),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CAR_SELECTED"
    assert response.json()["car_id"] == str(vehicle.id)

    response = await test_client.post("/v1/requests/get", json={"request_id": request_id}, headers=ADMIN)
    assert response.json()["status"] == "CAR_ASSIGNED"
    assert response.json()["claim_attempts"] == 2

    response = await test_client.post(
        "/v1/claims/active", json={"request_id": request_id}, headers=host_headers(other_host)
    )
    assert response.status_code == 200
    assert response.json()["id"] == claim["id"]


@pytest.mark.asyncio
async def test_release_then_active_claim_missing(test_client, host, open_request):
    response = await test_client.post(
        "/v1/claims/claim", json={"request_id": str(open_request.id)}, headers=host_headers(host)
    )
    claim_id = response.json()["id"]

    response = await test_client.post("/v1/claims/release", json={"claim_id": claim_id}, headers=host_headers(host))
    assert response.status_code == 200
    assert response.json()["status"] == "RELEASED"

    response = await test_client.post(
        "/v1/claims/active", json={"request_id": str(open_request.id)}, headers=host_headers(host)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_search_and_archive(test_client, open_request):
    response = await test_client.post("/v1/requests/search", json={"limit": 10}, headers=ADMIN)
    assert response.status_code == 200
    data = response.json()
    assert [item["request_code"] for item in data["items"]] == ["REQ-TEST01"]
    assert data["next_cursor"] is None

    response = await test_client.post(
        "/v1/requests/archive", json={"request_id": str(open_request.id)}, headers=ADMIN
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ARCHIVED"


@pytest.mark.asyncio
async def test_claim_requires_host_account(test_client, open_request):
    response = await test_client.post("/v1/claims/claim", json={"request_id": str(open_request.id)}, headers=ADMIN)

    assert response.status_code == 403
    assert response.json()["code"] == "HOST_ACCOUNT_REQUIRED"


@pytest.mark.asyncio
async def test_missing_auth(test_client):
    """Test request creation without authentication."""
    response = await test_client.post("/v1/requests/create", json={"guest_name": "Dana"})

    assert response.status_code == 401
    data = response.json()
    assert data["status"] == 401
    assert data["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_invalid_token(test_client):
    response = await test_client.post(
        "/v1/requests/create",
        json={"guest_name": "Dana"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_data(test_client):
    """Test request creation with invalid data."""
    response = await test_client.post(
        "/v1/requests/create",
        json={"guest_name": "", "start_date": "2030-07-05", "end_date": "2030-07-01"},
        headers=ADMIN,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    assert data["code"] == "REQUEST_INVALID"
    assert data["violations"]


@pytest.mark.asyncio
async def test_negotiation_flow(test_client):
    """Owner proposes, manager counters, owner accepts."""
    owner = auth_headers("owner-1", "owner@hosts.example")
    manager = auth_headers("manager-1", "manager@hosts.example")

    response = await test_client.post(
        "/v1/invitations/send",
        json={
            "invitation_type": "OWNER_INVITES_MANAGER",
            "recipient_email": "manager@hosts.example",
            "owner_percent": 70,
            "manager_percent": 30,
        },
        headers=owner,
    )
    assert response.status_code == 201
    token = response.json()["token"]

    response = await test_client.post(
        "/v1/invitations/counter",
        json={"token": token, "owner_percent": 75, "manager_percent": 25},
        headers=owner,
    )
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_YOUR_TURN"

    response = await test_client.post(
        "/v1/invitations/counter",
        json={"token": token, "owner_percent": 60, "manager_percent": 40, "note": "Cleaning included"},
        headers=manager,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COUNTER_OFFERED"
    assert response.json()["recipient_id"] == "manager-1"

    response = await test_client.post("/v1/invitations/summary", json={"token": token}, headers=owner)
    summary = response.json()
    assert summary["can_respond"] is True
    assert summary["current_terms"] == {"owner_percent": 60, "manager_percent": 40}
    assert summary["earnings"]["owner_percent"] == 54.0

    response = await test_client.post("/v1/invitations/accept", json={"token": token}, headers=owner)
    assert response.status_code == 200
    assert response.json()["status"] == "ACCEPTED"
    assert len(response.json()["negotiation_history"]) == 2

    response = await test_client.post("/v1/invitations/list", headers=manager)
    assert [inv["token"] for inv in response.json()] == [token]

    response = await test_client.post(
        "/v1/invitations/get", json={"token": token}, headers=auth_headers("stranger-1", "x@hosts.example")
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_split_rejected(test_client):
    response = await test_client.post(
        "/v1/invitations/send",
        json={
            "invitation_type": "OWNER_INVITES_MANAGER",
            "recipient_email": "manager@hosts.example",
            "owner_percent": 95,
            "manager_percent": 5,
        },
        headers=auth_headers("owner-1", "owner@hosts.example"),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SPLIT"


@pytest.mark.asyncio
async def test_vehicle_change_flow(test_app, test_client, test_session, notifier, vehicle, other_host):
    """A rejected booking moves to another vehicle once the guest consents."""
    test_app.dependency_overrides[get_current_notifier] = lambda: notifier
    booking = await seed_booking(test_session, vehicle, review=HostReviewStatus.REJECTED)
    replacement = await seed_vehicle(test_session, other_host, make="Honda", model="Civic")

    response = await test_client.post(
        "/v1/reassignment/initiate",
        json={"booking_id": str(booking.id), "new_car_id": str(replacement.id), "reason": "Brakes failed"},
        headers=ADMIN,
    )
    assert response.status_code == 201
    issued = response.json()
    assert issued["consent_url"].endswith(issued["token"])
    assert notifier.kinds() == ["vehicle_change_proposed"]

    # The guest pages carry no bearer token
    response = await test_client.post("/v1/reassignment/status", json={"token": issued["token"]})
    assert response.json()["state"] == "VALID"

    response = await test_client.post("/v1/reassignment/consume", json={"token": issued["token"]})
    assert response.status_code == 200
    assert response.json()["car_id"] == str(replacement.id)
    assert response.json()["host_id"] == str(other_host.id)

    response = await test_client.post("/v1/reassignment/consume", json={"token": issued["token"]})
    assert response.status_code == 410
    assert response.json()["code"] == "TOKEN_CONSUMED"

    response = await test_client.post("/v1/reassignment/status", json={"token": issued["token"]})
    assert response.json()["state"] == "CONSUMED"


@pytest.mark.asyncio
async def test_commission_endpoints(test_client, host):
    response = await test_client.post(
        "/v1/commission/quote", json={"path": "tiers", "tier": "commercial"}, headers=ADMIN
    )
    assert response.status_code == 200
    assert response.json()["rate"] == 0.10
    assert response.json()["payout_percentage"] == 0.90

    response = await test_client.post("/v1/commission/quote", json={"path": "tiers"}, headers=ADMIN)
    assert response.status_code == 400

    response = await test_client.post(
        "/v1/commission/approve", json={"host_id": str(host.id), "fleet_size": 120}, headers=ADMIN
    )
    assert response.json()["commission_rate"] == 0.10

    response = await test_client.post(
        "/v1/commission/apply",
        json={"host_id": str(host.id), "path": "insurance"},
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["old_rate"] == 0.10
    assert response.json()["new_rate"] == 0.60
    assert response.json()["actor"] == "ops-admin"

    response = await test_client.post("/v1/commission/audit", json={"host_id": str(host.id)}, headers=ADMIN)
    assert [entry["new_rate"] for entry in response.json()] == [0.10, 0.60]


@pytest.mark.asyncio
async def test_host_settings_endpoints(test_client, host, vehicle):
    response = await test_client.post(
        "/v1/host/deposits",
        json={"host_id": str(host.id), "default_deposit": 130, "make_deposits": {"Tesla": 512, "Kia": 20}},
        headers=host_headers(host),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["default_deposit"] == 125
    assert data["make_deposits"] == {"Tesla": 500}
    assert data["rejected_makes"] == {"Kia": 20.0}

    response = await test_client.post(
        "/v1/host/vehicle-deposit", json={"vehicle_id": str(vehicle.id)}, headers=host_headers(host)
    )
    assert response.json() == {"vehicle_id": str(vehicle.id), "deposit_mode": "GLOBAL", "deposit": 125}

    response = await test_client.post(
        "/v1/host/vehicle-deposit", json={"vehicle_id": str(uuid4())}, headers=host_headers(host)
    )
    assert response.status_code == 404

    response = await test_client.post(
        "/v1/host/eligibility",
        json={"days_active": 3, "completed_trips": 26, "at_fault_claims": 0},
        headers=host_headers(host),
    )
    assert response.json() == {"eligible": True, "path": "alternate", "reasons": []}
