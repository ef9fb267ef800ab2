"""
Shared test fixtures.

Provides:
  • a frozen clock and a recording delivery channel
  • fully wired services on a temporary SQLite database
  • a FastAPI TestClient running the real lifespan against that same
    kind of temporary database, with workers off and rate limiting
    disabled

API tests act as ``MOCK_USER`` by default; use ``act_as`` to switch.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_current_user
from app.main import create_app
from app.models import Court, UserInfo
from app.services.container import Services, build_services
from tests.mocks.models import MOCK_ADMIN, MOCK_USER, make_court_create
from tests.mocks.services import FrozenClock, RecordingDelivery


# ── Collaborators ──────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


# ── Services (direct, no HTTP) ─────────────────────────────────────────────


@pytest.fixture()
async def services(tmp_path, clock, delivery) -> Services:
    svc = await build_services(str(tmp_path / "test.db"), clock=clock, delivery=delivery)
    yield svc
    await svc.close()


@pytest.fixture()
async def court(services: Services) -> Court:
    return await services.courts.create(make_court_create(), created_by=MOCK_ADMIN.email)


# ── HTTP ───────────────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch):
    """Disable rate limiting in tests."""
    from app.rate_limit import limiter as _limiter

    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def test_app(_test_env, tmp_path, clock, delivery):
    return create_app(
        db_path=str(tmp_path / "api.db"),
        clock=clock,
        delivery=delivery,
        workers_enabled=False,
    )


@pytest.fixture()
def act_as(test_app):
    """Switch the authenticated user for subsequent requests."""

    def _act_as(user: UserInfo) -> None:
        async def _mock_current_user():
            return user

        test_app.dependency_overrides[get_current_user] = _mock_current_user

    return _act_as


@pytest.fixture()
def client(test_app, act_as) -> TestClient:
    """
    FastAPI TestClient with a temp DB and auth bypassed.

    Uses a context manager so the lifespan runs (DB init/shutdown).
    """
    act_as(MOCK_USER)

    with TestClient(test_app, raise_server_exceptions=False) as tc:
        yield tc

    test_app.dependency_overrides.clear()


@pytest.fixture()
def unauthed_client(test_app) -> TestClient:
    """
    TestClient without auth overrides — requests are rejected unless
    a session cookie or bearer token is provided.
    """
    test_app.dependency_overrides.clear()

    with TestClient(test_app, raise_server_exceptions=False) as tc:
        yield tc

    test_app.dependency_overrides.clear()


@pytest.fixture()
def api_court(client, act_as) -> dict:
    """A court registered through the API by an admin."""
    act_as(MOCK_ADMIN)
    resp = client.post("/api/courts", json=make_court_create().model_dump(mode="json"))
    assert resp.status_code == 201, resp.text
    act_as(MOCK_USER)
    return resp.json()
