"""Simple API health tests against the fully configured application."""

import pytest
from httpx import ASGITransport, AsyncClient

from hostmatch.main import create_app


@pytest.mark.asyncio
async def test_api_health_endpoints():
    """Probe endpoints answer without any seeded data."""
    app = create_app(use_lifespan=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

        response = await client.get("/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["database"] == "ok"

        response = await client.get("/info")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "hostmatch-engine"
        assert data["limits"]["max_negotiation_rounds"] == 5


@pytest.mark.asyncio
async def test_metrics_endpoint():
    """Prometheus exposition includes the allocation counters."""
    app = create_app(use_lifespan=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "claims_created_total" in response.text


@pytest.mark.asyncio
async def test_request_id_is_echoed():
    app = create_app(use_lifespan=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

        response = await client.get("/health")
        assert response.headers["X-Request-ID"]
