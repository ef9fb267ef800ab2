"""Tests for the /api/notifications endpoints."""

import pytest

from tests.mocks.models import MOCK_USER, MOCK_USER_2, at, game_payload


@pytest.fixture()
def joined_game(client, act_as, api_court) -> dict:
    """A game by MOCK_USER that MOCK_USER_2 joined; the creator is notified."""
    game = client.post("/api/games", json=game_payload(api_court["id"])).json()
    act_as(MOCK_USER_2)
    client.post(f"/api/games/{game['id']}/join")
    act_as(MOCK_USER)
    return game


class TestInbox:
    def test_empty_inbox(self, client):
        resp = client.get("/api/notifications")
        assert resp.status_code == 200
        data = resp.json()
        assert data["items"] == []
        assert data["meta"]["total_items"] == 0

    def test_join_notice_visible_to_creator(self, client, joined_game):
        data = client.get("/api/notifications").json()
        assert [n["kind"] for n in data["items"]] == ["player_joined"]
        assert data["items"][0]["game_id"] == joined_game["id"]
        assert MOCK_USER_2.email in data["items"][0]["message"]

    def test_reminders_appear_once_due(self, client, clock, joined_game):
        clock.set(at(9, 5))
        kinds = sorted(n["kind"] for n in client.get("/api/notifications").json()["items"])
        assert kinds == ["game_reminder", "player_joined"]

    def test_other_users_notifications_hidden(self, client, act_as, joined_game):
        act_as(MOCK_USER_2)
        assert client.get("/api/notifications").json()["items"] == []

    def test_requires_auth(self, unauthed_client):
        assert unauthed_client.get("/api/notifications").status_code == 401


class TestReadState:
    def test_unread_count(self, client, joined_game):
        assert client.get("/api/notifications/unread-count").json() == {"count": 1}

    def test_mark_read(self, client, joined_game):
        note = client.get("/api/notifications").json()["items"][0]
        resp = client.post(f"/api/notifications/{note['id']}/read")
        assert resp.status_code == 200
        assert resp.json()["is_read"] is True
        assert client.get("/api/notifications/unread-count").json() == {"count": 0}
        unread = client.get("/api/notifications", params={"unread_only": True}).json()
        assert unread["items"] == []

    def test_mark_read_of_foreign_notification(self, client, act_as, joined_game):
        note = client.get("/api/notifications").json()["items"][0]
        act_as(MOCK_USER_2)
        resp = client.post(f"/api/notifications/{note['id']}/read")
        assert resp.status_code == 404

    def test_mark_all_read(self, client, clock, joined_game):
        clock.set(at(9, 5))
        resp = client.post("/api/notifications/read-all")
        assert resp.status_code == 200
        assert resp.json()["message"] == "2 notification(s) marked as read"
        assert client.get("/api/notifications/unread-count").json() == {"count": 0}
