"""
End-to-end flow through the HTTP API with a frozen clock:

  admin registers a court → player books a game → others join (one is
  turned away when the game is full) → reminders go out in their window
  → the sweep advances the game → the finished game stays in "mine".
"""

from tests.mocks.models import MOCK_ADMIN, MOCK_USER, MOCK_USER_2, MOCK_USER_3, at, game_payload


def test_full_game_lifecycle(client, act_as, clock, delivery, test_app):
    services = test_app.state.services

    act_as(MOCK_ADMIN)
    court = client.post(
        "/api/courts",
        json={
            "name": "Riverside",
            "location": {"lat": 54.69, "lng": 25.28, "address": "Upės g. 1"},
            "sport_types": ["basketball"],
        },
    ).json()

    act_as(MOCK_USER)
    game = client.post("/api/games", json=game_payload(court["id"], capacity=2)).json()
    assert game["status"] == "scheduled"

    act_as(MOCK_USER_2)
    assert client.post(f"/api/games/{game['id']}/join").status_code == 200
    act_as(MOCK_USER_3)
    full = client.post(f"/api/games/{game['id']}/join")
    assert full.status_code == 409 and full.json()["error"] == "game_full"

    # The creator's join notice goes out right away, reminders wait.
    assert client.portal.call(services.dispatcher.dispatch_once) == 1
    assert [n.kind.value for n in delivery.sent] == ["player_joined"]

    clock.set(at(9, 15))
    assert client.portal.call(services.dispatcher.dispatch_once) == 2
    reminded = sorted(n.recipient for n in delivery.sent if n.kind.value == "game_reminder")
    assert reminded == [MOCK_USER_2.email, MOCK_USER.email]

    clock.set(at(10, 15))
    act_as(MOCK_ADMIN)
    assert client.post("/api/admin/sweep").json() == {"started": 1, "completed": 0}
    act_as(MOCK_USER_2)
    leave = client.post(f"/api/games/{game['id']}/leave")
    assert leave.status_code == 409 and leave.json()["error"] == "invalid_status"

    clock.set(at(11))
    act_as(MOCK_ADMIN)
    assert client.post("/api/admin/sweep").json() == {"started": 0, "completed": 1}

    act_as(MOCK_USER)
    assert client.get(f"/api/games/{game['id']}").json()["status"] == "completed"
    mine = client.get("/api/games/mine").json()
    assert [g["id"] for g in mine["items"]] == [game["id"]]
    assert client.get("/api/games").json()["items"] == []

    # The slot stays booked by the finished game.
    booked = client.get(
        f"/api/courts/{court['id']}/availability", params={"date": "2025-06-01"}
    ).json()["booked"]
    assert booked == [{"start_time": "10:00", "end_time": "11:00", "game_id": game["id"]}]


def test_cancellation_flow(client, act_as, delivery, test_app, api_court):
    services = test_app.state.services

    game = client.post("/api/games", json=game_payload(api_court["id"])).json()
    act_as(MOCK_USER_2)
    client.post(f"/api/games/{game['id']}/join")

    act_as(MOCK_USER)
    resp = client.post(f"/api/games/{game['id']}/cancel", json={"reason": "Court flooded"})
    assert resp.status_code == 200

    client.portal.call(services.dispatcher.dispatch_once)
    cancelled = delivery.sent_to(MOCK_USER_2.email)
    assert [n.kind.value for n in cancelled] == ["game_cancelled"]
    assert "Court flooded" in cancelled[0].message

    # The freed slot can be booked again by someone else.
    act_as(MOCK_USER_3)
    again = client.post("/api/games", json=game_payload(api_court["id"]))
    assert again.status_code == 201
