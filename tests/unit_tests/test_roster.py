"""Tests for RosterManager join/leave rules and their error precedence."""

import pytest

from app.errors import (
    AlreadyJoined,
    CreatorCannotLeave,
    GameFull,
    InvalidStatus,
    NotAParticipant,
    NotFound,
)
from tests.mocks.models import MOCK_USER, MOCK_USER_2, MOCK_USER_3, at, make_game_create


@pytest.fixture()
async def game(services, court):
    return await services.booking.create_game(
        make_game_create(court.id, capacity=2), MOCK_USER
    )


class TestJoin:
    async def test_join_appends_confirmed_entry(self, services, game):
        joined = await services.roster.join(game.id, MOCK_USER_2.email)
        assert joined.confirmed_players == [MOCK_USER.email, MOCK_USER_2.email]
        assert joined.roster[1].position == 1
        assert joined.version > game.version

    async def test_full_game_rejected(self, services, game):
        await services.roster.join(game.id, MOCK_USER_2.email)
        with pytest.raises(GameFull):
            await services.roster.join(game.id, MOCK_USER_3.email)

    async def test_double_join_rejected_without_mutation(self, services, court):
        game = await services.booking.create_game(make_game_create(court.id), MOCK_USER)
        await services.roster.join(game.id, MOCK_USER_2.email)
        with pytest.raises(AlreadyJoined):
            await services.roster.join(game.id, MOCK_USER_2.email)
        assert len((await services.games.get(game.id)).roster) == 2

    async def test_creator_cannot_join_twice(self, services, game):
        with pytest.raises(AlreadyJoined):
            await services.roster.join(game.id, MOCK_USER.email)

    async def test_unknown_game(self, services):
        with pytest.raises(NotFound):
            await services.roster.join("missing", MOCK_USER_2.email)

    async def test_cancelled_game_rejected_without_mutation(self, services, game):
        await services.lifecycle.cancel(game.id, "rain")
        with pytest.raises(InvalidStatus) as exc_info:
            await services.roster.join(game.id, MOCK_USER_2.email)
        assert exc_info.value.current_status == "cancelled"
        assert len((await services.games.get(game.id)).roster) == 1

    async def test_completed_game_rejected(self, services, clock, game):
        clock.set(at(12))
        await services.lifecycle.sweep()
        with pytest.raises(InvalidStatus) as exc_info:
            await services.roster.join(game.id, MOCK_USER_2.email)
        assert exc_info.value.current_status == "completed"

    async def test_started_but_not_swept_game_rejected(self, services, clock, game):
        clock.set(at(10))
        with pytest.raises(InvalidStatus) as exc_info:
            await services.roster.join(game.id, MOCK_USER_2.email)
        assert exc_info.value.current_status == "scheduled"
        assert "already started" in exc_info.value.message

    async def test_status_checked_before_capacity(self, services, game):
        await services.roster.join(game.id, MOCK_USER_2.email)
        await services.lifecycle.cancel(game.id, "rain")
        with pytest.raises(InvalidStatus):
            await services.roster.join(game.id, MOCK_USER_3.email)

    async def test_capacity_checked_before_membership(self, services, game):
        await services.roster.join(game.id, MOCK_USER_2.email)
        with pytest.raises(GameFull):
            await services.roster.join(game.id, MOCK_USER_2.email)


class TestLeave:
    async def test_leave_removes_entry(self, services, game):
        await services.roster.join(game.id, MOCK_USER_2.email)
        left = await services.roster.leave(game.id, MOCK_USER_2.email)
        assert left.confirmed_players == [MOCK_USER.email]

    async def test_leave_frees_a_seat(self, services, game):
        await services.roster.join(game.id, MOCK_USER_2.email)
        await services.roster.leave(game.id, MOCK_USER_2.email)
        joined = await services.roster.join(game.id, MOCK_USER_3.email)
        assert joined.confirmed_players == [MOCK_USER.email, MOCK_USER_3.email]

    async def test_creator_cannot_leave(self, services, game):
        with pytest.raises(CreatorCannotLeave):
            await services.roster.leave(game.id, MOCK_USER.email)
        assert (await services.games.get(game.id)).confirmed_players == [MOCK_USER.email]

    async def test_non_member_cannot_leave(self, services, game):
        with pytest.raises(NotAParticipant):
            await services.roster.leave(game.id, MOCK_USER_2.email)

    async def test_leave_requires_scheduled(self, services, game):
        await services.roster.join(game.id, MOCK_USER_2.email)
        await services.lifecycle.cancel(game.id, "rain")
        with pytest.raises(InvalidStatus):
            await services.roster.leave(game.id, MOCK_USER_2.email)
        assert MOCK_USER_2.email in (await services.games.get(game.id)).confirmed_players
