"""Tests for the /api/games endpoints."""

import pytest

from tests.mocks.models import MOCK_ADMIN, MOCK_USER, MOCK_USER_2, MOCK_USER_3, game_payload


@pytest.fixture()
def api_game(client, api_court) -> dict:
    resp = client.post("/api/games", json=game_payload(api_court["id"]))
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateGame:
    def test_create_game(self, client, api_game):
        assert api_game["status"] == "scheduled"
        assert api_game["creator"] == MOCK_USER.email
        assert [e["player"] for e in api_game["roster"]] == [MOCK_USER.email]
        assert api_game["start_time"].startswith("2025-06-01T10:00:00")

    def test_overlapping_game_conflicts(self, client, api_court, api_game):
        resp = client.post(
            "/api/games",
            json=game_payload(api_court["id"], start_time="2025-06-01T10:30:00Z"),
        )
        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "not_available"
        assert body["details"]["start_time"] == "10:30"

    def test_adjacent_game_allowed(self, client, api_court, api_game):
        resp = client.post(
            "/api/games",
            json=game_payload(api_court["id"], start_time="2025-06-01T11:00:00Z"),
        )
        assert resp.status_code == 201

    def test_offset_start_time_normalised_to_utc(self, client, api_court):
        resp = client.post(
            "/api/games",
            json=game_payload(api_court["id"], start_time="2025-06-01T15:00:00+03:00"),
        )
        assert resp.status_code == 201
        assert resp.json()["start_time"].startswith("2025-06-01T12:00:00")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"duration_minutes": 15},
            {"capacity": 100},
            {"format": "4x4"},
            {"start_time": "2025-05-31T10:00:00Z"},
        ],
    )
    def test_invalid_game_rejected(self, client, api_court, overrides):
        resp = client.post("/api/games", json=game_payload(api_court["id"], **overrides))
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"

    def test_unknown_court(self, client):
        resp = client.post("/api/games", json=game_payload("nope"))
        assert resp.status_code == 404

    def test_requires_auth(self, unauthed_client):
        resp = unauthed_client.post("/api/games", json=game_payload("nope"))
        assert resp.status_code == 401


class TestGetAndList:
    def test_get_game(self, client, api_game):
        resp = client.get(f"/api/games/{api_game['id']}")
        assert resp.status_code == 200
        assert resp.json()["id"] == api_game["id"]

    def test_get_unknown_game(self, client):
        resp = client.get("/api/games/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_list_games(self, client, api_game):
        resp = client.get("/api/games")
        assert resp.status_code == 200
        data = resp.json()
        assert [g["id"] for g in data["items"]] == [api_game["id"]]
        assert data["meta"]["total_items"] == 1

    def test_private_game_only_in_mine(self, client, api_court):
        resp = client.post("/api/games", json=game_payload(api_court["id"], is_private=True))
        private_id = resp.json()["id"]

        assert client.get("/api/games").json()["items"] == []
        mine = client.get("/api/games/mine").json()
        assert [g["id"] for g in mine["items"]] == [private_id]

    def test_nearby(self, client, api_game):
        resp = client.get("/api/games/nearby", params={"lat": 54.6872, "lng": 25.2797})
        assert resp.status_code == 200
        assert [g["id"] for g in resp.json()["items"]] == [api_game["id"]]

    def test_list_window_without_offset_taken_as_utc(self, client, api_game):
        resp = client.get("/api/games", params={"date_from": "2025-06-01T09:00:00"})
        assert resp.status_code == 200
        assert [g["id"] for g in resp.json()["items"]] == [api_game["id"]]

        resp = client.get("/api/games", params={"date_to": "2025-06-01T09:30:00"})
        assert resp.status_code == 200
        assert resp.json()["items"] == []

    def test_nearby_window_without_offset(self, client, api_game):
        resp = client.get(
            "/api/games/nearby",
            params={
                "lat": 54.6872,
                "lng": 25.2797,
                "date_from": "2025-06-01T09:00:00",
                "date_to": "2025-06-01T10:00:00",
            },
        )
        assert resp.status_code == 200
        assert [g["id"] for g in resp.json()["items"]] == [api_game["id"]]

    def test_mine_role_filter(self, client, act_as, api_game):
        act_as(MOCK_USER_2)
        client.post(f"/api/games/{api_game['id']}/join")
        joined = client.get("/api/games/mine", params={"role": "joined"}).json()
        created = client.get("/api/games/mine", params={"role": "created"}).json()
        assert [g["id"] for g in joined["items"]] == [api_game["id"]]
        assert created["items"] == []

    def test_mine_rejects_unknown_role(self, client):
        assert client.get("/api/games/mine", params={"role": "fan"}).status_code == 422

    def test_stats(self, client, api_game):
        resp = client.get("/api/games/stats", params={"timeframe": "day"})
        assert resp.status_code == 200
        assert resp.json()["timeframe"] == "day"

    def test_stats_rejects_unknown_timeframe(self, client):
        assert client.get("/api/games/stats", params={"timeframe": "year"}).status_code == 422


class TestRoster:
    def test_join_and_leave(self, client, act_as, api_game):
        act_as(MOCK_USER_2)
        resp = client.post(f"/api/games/{api_game['id']}/join")
        assert resp.status_code == 200
        assert [e["player"] for e in resp.json()["roster"]] == [MOCK_USER.email, MOCK_USER_2.email]

        resp = client.post(f"/api/games/{api_game['id']}/leave")
        assert resp.status_code == 200
        assert [e["player"] for e in resp.json()["roster"]] == [MOCK_USER.email]

    def test_join_twice(self, client, act_as, api_game):
        act_as(MOCK_USER_2)
        client.post(f"/api/games/{api_game['id']}/join")
        resp = client.post(f"/api/games/{api_game['id']}/join")
        assert resp.status_code == 409
        assert resp.json()["error"] == "already_joined"

    def test_join_full_game(self, client, act_as, api_court):
        game = client.post("/api/games", json=game_payload(api_court["id"], capacity=2)).json()
        act_as(MOCK_USER_2)
        assert client.post(f"/api/games/{game['id']}/join").status_code == 200
        act_as(MOCK_USER_3)
        resp = client.post(f"/api/games/{game['id']}/join")
        assert resp.status_code == 409
        assert resp.json()["error"] == "game_full"

    def test_creator_cannot_leave(self, client, api_game):
        resp = client.post(f"/api/games/{api_game['id']}/leave")
        assert resp.status_code == 409
        assert resp.json()["error"] == "creator_cannot_leave"

    def test_leave_without_joining(self, client, act_as, api_game):
        act_as(MOCK_USER_3)
        resp = client.post(f"/api/games/{api_game['id']}/leave")
        assert resp.status_code == 409
        assert resp.json()["error"] == "not_a_participant"


class TestCancel:
    def test_creator_cancels_with_reason(self, client, api_game):
        resp = client.post(f"/api/games/{api_game['id']}/cancel", json={"reason": "rain"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["cancel_reason"] == "rain"

    def test_cancel_without_body_uses_default_reason(self, client, api_game):
        resp = client.post(f"/api/games/{api_game['id']}/cancel")
        assert resp.status_code == 200
        assert resp.json()["cancel_reason"] == "Game cancelled by creator"

    def test_other_player_forbidden(self, client, act_as, api_game):
        act_as(MOCK_USER_2)
        resp = client.post(f"/api/games/{api_game['id']}/cancel")
        assert resp.status_code == 403
        assert resp.json()["error"] == "permission_denied"

    def test_admin_may_cancel(self, client, act_as, api_game):
        act_as(MOCK_ADMIN)
        assert client.post(f"/api/games/{api_game['id']}/cancel").status_code == 200

    def test_cancel_twice(self, client, api_game):
        client.post(f"/api/games/{api_game['id']}/cancel")
        resp = client.post(f"/api/games/{api_game['id']}/cancel")
        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "invalid_status"
        assert body["details"]["current_status"] == "cancelled"

    def test_join_cancelled_game(self, client, act_as, api_game):
        client.post(f"/api/games/{api_game['id']}/cancel")
        act_as(MOCK_USER_2)
        resp = client.post(f"/api/games/{api_game['id']}/join")
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_status"


class TestUpdate:
    def test_reschedule(self, client, api_court, api_game):
        resp = client.patch(
            f"/api/games/{api_game['id']}",
            json={"start_time": "2025-06-01T14:00:00Z", "duration_minutes": 90},
        )
        assert resp.status_code == 200
        assert resp.json()["start_time"].startswith("2025-06-01T14:00:00")
        booked = client.get(
            f"/api/courts/{api_court['id']}/availability", params={"date": "2025-06-01"}
        ).json()["booked"]
        assert [(b["start_time"], b["end_time"]) for b in booked] == [("14:00", "15:30")]

    def test_edit_details(self, client, api_game):
        resp = client.patch(f"/api/games/{api_game['id']}", json={"skill_level": "beginner"})
        assert resp.status_code == 200
        assert resp.json()["skill_level"] == "beginner"

    def test_non_creator_forbidden(self, client, act_as, api_game):
        act_as(MOCK_USER_2)
        resp = client.patch(f"/api/games/{api_game['id']}", json={"capacity": 8})
        assert resp.status_code == 403
