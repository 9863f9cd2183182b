"""
Health check endpoint tests.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready endpoint should reach the database and return status ready."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    """API v1 root should return version and endpoint list."""
    response = await client.get("/api/v1/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "v1"
    assert "/tasks" in data["endpoints"]


@pytest.mark.asyncio
async def test_security_headers_and_request_id(client: AsyncClient):
    """Every response carries security headers and echoes X-Request-ID."""
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_missing_token_is_401_envelope(client: AsyncClient):
    """Unauthenticated calls get the JSON error envelope."""
    response = await client.get("/api/v1/tasks")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Authentication required"


@pytest.mark.asyncio
async def test_garbage_token_is_401(client: AsyncClient):
    response = await client.get("/api/v1/tasks", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"
