"""Tests for the /api/health endpoint."""


def test_health_returns_ok(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200

    data = resp.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["timestamp"].startswith("2025-06-01T06:00:00")


def test_health_needs_no_auth(unauthed_client):
    assert unauthed_client.get("/api/health").status_code == 200
