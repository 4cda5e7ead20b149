"""Probe and service-info endpoints."""

import pytest

from hostmatch.core.observability import SERVICE_VERSION


@pytest.mark.asyncio
async def test_liveness_reports_service_version(test_client):
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["version"] == SERVICE_VERSION


@pytest.mark.asyncio
async def test_readiness_lists_idle_sweep_worker(test_client):
    """Background workers are disabled under test, so the sweep reports idle."""
    response = await test_client.get("/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["workers"] == {"expiry_sweep": False}


@pytest.mark.asyncio
async def test_info_publishes_engine_limits(test_client):
    data = (await test_client.get("/info")).json()

    assert data["limits"] == {
        "claim_ttl_minutes": 30,
        "reassignment_token_hours": 48,
        "invitation_ttl_days": 7,
        "max_negotiation_rounds": 5,
        "management_platform_fee": 0.10,
    }


@pytest.mark.asyncio
async def test_ping_is_an_rpc_post(test_client):
    response = await test_client.post("/v1/health/ping", json={})
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await test_client.get("/v1/health/ping")
    assert response.status_code == 405
