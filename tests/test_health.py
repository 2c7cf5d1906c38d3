"""Tests for health endpoints."""

from uuid import UUID

from fastapi.testclient import TestClient


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness_without_database(client: TestClient) -> None:
    """Readiness reports degraded while Cassandra is not connected."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["cassandra"] is False
    assert data["environment"] == "testing"
    assert "redis" in data
    assert "payments" in data


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "learnpath"
    assert "version" in data
    assert "environment" in data


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "learnpath API"
    assert "version" in data


def test_request_id_header(client: TestClient) -> None:
    """Responses carry the request id supplied by the caller."""
    response = client.get("/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_generated(client: TestClient) -> None:
    response = client.get("/health/live")
    assert UUID(response.headers["X-Request-ID"])


def test_unknown_route_envelope(client: TestClient) -> None:
    response = client.get("/v1/nowhere")
    assert response.status_code == 404
    body = response.json()
    assert body == {
        "success": False,
        "error": True,
        "message": "Not Found",
        "status_code": 404,
        "request_id": body["request_id"],
    }
