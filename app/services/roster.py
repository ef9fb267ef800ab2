"""
Roster manager — join and leave with capacity and membership rules.

Both writes are single conditional statements.  ``join`` inserts the
entry only if, at write time, the game is still scheduled, has not
started, has a free confirmed seat and does not already list the player,
so concurrent joins cannot overshoot capacity and a join racing a cancel
cannot land on a cancelled game.  When the write affects no row, the
game is re-read to report which precondition failed, in the documented
order.
"""

from __future__ import annotations

import logging

from app.db import Database, ts
from app.errors import (
    AlreadyJoined,
    CreatorCannotLeave,
    GameFull,
    InvalidStatus,
    NotAParticipant,
    NotFound,
)
from app.models import Game, GameStatus
from app.services.clock import Clock

logger = logging.getLogger(__name__)


class RosterManager:
    def __init__(self, db: Database, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def join(self, game_id: str, player: str) -> Game:
        """
        Append ``player`` as a confirmed roster entry.

        Raises, checked in order: ``NotFound``; ``InvalidStatus`` when the
        game is not scheduled or has already started; ``GameFull``;
        ``AlreadyJoined``.
        """
        now = ts(self._clock.now())
        inserted = await self._db.execute(
            """
            INSERT INTO roster_entries (game_id, player, joined_at, state, position)
            SELECT g.id, ?, ?, 'confirmed',
                   COALESCE((SELECT MAX(position) + 1 FROM roster_entries r
                             WHERE r.game_id = g.id), 0)
            FROM games g
            WHERE g.id = ?
              AND g.status = 'scheduled'
              AND g.start_time > ?
              AND (SELECT COUNT(*) FROM roster_entries r
                   WHERE r.game_id = g.id AND r.state = 'confirmed') < g.capacity
              AND NOT EXISTS (SELECT 1 FROM roster_entries r
                              WHERE r.game_id = g.id AND r.player = ?)
            """,
            (player, now, game_id, now, player),
        )

        if inserted != 1:
            raise self._join_failure(game_id, await self._db.fetch_game(game_id), player)

        await self._touch(game_id)
        game = await self._db.fetch_game(game_id)
        logger.info("%s joined game %s", player, game_id)
        return game

    def _join_failure(self, game_id: str, game: Game | None, player: str) -> Exception:
        if game is None:
            return NotFound("Game", game_id)
        if game.status != GameStatus.SCHEDULED:
            error: Exception = InvalidStatus(game_id, game.status.value, GameStatus.SCHEDULED.value)
        elif game.start_time <= self._clock.now():
            error = InvalidStatus(
                game_id,
                game.status.value,
                GameStatus.SCHEDULED.value,
                "The game has already started.",
            )
        elif len(game.confirmed_players) >= game.capacity:
            error = GameFull(game_id, game.capacity)
        elif any(e.player == player for e in game.roster):
            error = AlreadyJoined(game_id, player)
        else:
            # Every precondition holds on re-read; the row changed in between.
            error = GameFull(game_id, game.capacity)
        logger.warning("Join rejected for %s on game %s: %s", player, game_id, error)
        return error

    async def leave(self, game_id: str, player: str) -> Game:
        """
        Remove ``player``'s roster entry.

        Raises: ``NotFound``; ``InvalidStatus`` when not scheduled;
        ``CreatorCannotLeave``; ``NotAParticipant``.
        """
        deleted = await self._db.execute(
            """
            DELETE FROM roster_entries
            WHERE game_id = ? AND player = ?
              AND EXISTS (SELECT 1 FROM games g
                          WHERE g.id = roster_entries.game_id
                            AND g.status = 'scheduled'
                            AND g.creator != roster_entries.player)
            """,
            (game_id, player),
        )

        if deleted != 1:
            raise self._leave_failure(game_id, await self._db.fetch_game(game_id), player)

        await self._touch(game_id)
        game = await self._db.fetch_game(game_id)
        logger.info("%s left game %s", player, game_id)
        return game

    def _leave_failure(self, game_id: str, game: Game | None, player: str) -> Exception:
        if game is None:
            return NotFound("Game", game_id)
        if game.status != GameStatus.SCHEDULED:
            error: Exception = InvalidStatus(game_id, game.status.value, GameStatus.SCHEDULED.value)
        elif game.creator == player:
            error = CreatorCannotLeave(game_id)
        else:
            error = NotAParticipant(game_id, player)
        logger.warning("Leave rejected for %s on game %s: %s", player, game_id, error)
        return error

    async def _touch(self, game_id: str) -> None:
        await self._db.execute(
            "UPDATE games SET updated_at = ? WHERE id = ?",
            (ts(self._clock.now()), game_id),
        )
