"""
Game lifecycle state machine.

    scheduled ──(now >= start)──────────> in_progress ──(now >= end)──> completed
        │
        └──(creator or admin cancels)───> cancelled

Time-driven transitions are applied by ``sweep``, an idempotent pass run
by a background worker.  Each step is a conditional
``UPDATE ... WHERE status = <expected>``, so re-running it, racing it
with a cancel, or running two sweepers at once never advances a game
twice.  Reads never change status.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.db import Database, ts
from app.errors import InvalidStatus, NotFound, ValidationError
from app.models import Game, GameCreate, GameStatus, SweepReport
from app.services.availability import AvailabilityModel, slot_range
from app.services.clock import Clock, as_utc

logger = logging.getLogger(__name__)


def require_status(game: Game, required: GameStatus, reason: str | None = None) -> None:
    """Raise ``InvalidStatus`` unless ``game`` is in ``required``."""
    if game.status != required:
        raise InvalidStatus(game.id, game.status.value, required.value, reason)


def _check_capacity(game: Game, capacity: int | None) -> None:
    confirmed = len(game.confirmed_players)
    if capacity is not None and capacity < confirmed:
        raise ValidationError(
            "Capacity cannot be lower than the number of confirmed players",
            {"capacity": capacity, "confirmed": confirmed},
        )


class GameLifecycle:
    def __init__(self, db: Database, availability: AvailabilityModel, clock: Clock) -> None:
        self._db = db
        self._availability = availability
        self._clock = clock

    async def get(self, game_id: str) -> Game:
        game = await self._db.fetch_game(game_id)
        if game is None:
            raise NotFound("Game", game_id)
        return game

    # ── Creation ──────────────────────────────────────────────────────

    async def create(self, game_id: str, data: GameCreate, creator: str) -> Game:
        """Insert a scheduled game; the creator is seeded as roster entry 0."""
        now = ts(self._clock.now())
        start = as_utc(data.start_time)
        await self._db.execute(
            """
            INSERT INTO games
                (id, court_id, creator, sport_type, start_time, end_time,
                 duration_minutes, format, capacity, skill_level, description,
                 is_private, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'scheduled', ?, ?)
            """,
            (
                game_id, data.court_id, creator, data.sport_type,
                ts(start), ts(start + timedelta(minutes=data.duration_minutes)),
                data.duration_minutes, data.format, data.capacity, data.skill_level,
                data.description, int(data.is_private), now, now,
            ),
        )
        logger.info("Game %s created by %s on court %s at %s", game_id, creator, data.court_id, start)
        return await self.get(game_id)

    # ── Time-driven transitions ───────────────────────────────────────

    async def sweep(self, now: datetime | None = None) -> SweepReport:
        """
        Advance every overdue game.

        The start step runs before the completion step, so a game whose
        whole time range has passed reaches ``completed`` in one run.
        """
        stamp = ts(now or self._clock.now())
        started = await self._db.execute(
            """
            UPDATE games
            SET status = 'in_progress', version = version + 1, updated_at = ?
            WHERE status = 'scheduled' AND start_time <= ?
            """,
            (stamp, stamp),
        )
        completed = await self._db.execute(
            """
            UPDATE games
            SET status = 'completed', version = version + 1, updated_at = ?
            WHERE status = 'in_progress' AND end_time <= ?
            """,
            (stamp, stamp),
        )
        report = SweepReport(started=started, completed=completed)
        if started or completed:
            logger.info("Sweep advanced games: %d started, %d completed", started, completed)
        return report

    # ── Explicit transitions ──────────────────────────────────────────

    async def cancel(self, game_id: str, reason: str) -> Game:
        """Move a scheduled game to ``cancelled``; slot release is the caller's job."""
        updated = await self._db.execute(
            """
            UPDATE games
            SET status = 'cancelled', cancel_reason = ?, version = version + 1, updated_at = ?
            WHERE id = ? AND status = 'scheduled'
            """,
            (reason, ts(self._clock.now()), game_id),
        )
        game = await self.get(game_id)
        if updated != 1:
            logger.warning("Cancel rejected for game %s in status %s", game_id, game.status.value)
            require_status(game, GameStatus.SCHEDULED)
        logger.info("Game %s cancelled: %s", game_id, reason)
        return game

    async def abort(self, game_id: str, reason: str) -> bool:
        """Cancel a half-created game if its row landed; no error when it did not."""
        updated = await self._db.execute(
            """
            UPDATE games
            SET status = 'cancelled', cancel_reason = ?, version = version + 1, updated_at = ?
            WHERE id = ? AND status = 'scheduled'
            """,
            (reason, ts(self._clock.now()), game_id),
        )
        return updated == 1

    async def reschedule(
        self,
        game: Game,
        new_start: datetime,
        new_duration: int,
        *,
        capacity: int | None = None,
        skill_level: str | None = None,
        description: str | None = None,
    ) -> Game:
        """
        Move a scheduled game to a new time on the same court.

        The new range is reserved first (ignoring the game's own booking),
        then the game row is updated only if it is still scheduled at the
        time read by the caller, then the old range is released.  A
        failed row update releases the new reservation again.  Detail
        fields given alongside are written by the same UPDATE, so a time
        change and a capacity change land together or not at all.

        Raises:
            InvalidStatus: the game is not (or no longer) scheduled.
            SlotConflict: the new range overlaps another booking.
            ValidationError: ``capacity`` is below the confirmed roster.
        """
        require_status(game, GameStatus.SCHEDULED)
        new_start = as_utc(new_start)
        old_date, old_start, old_end = slot_range(game.start_time, game.duration_minutes)
        new_date, start_minute, end_minute = slot_range(new_start, new_duration)
        same_range = (old_date, old_start, old_end) == (new_date, start_minute, end_minute)

        if not same_range:
            await self._availability.reserve(
                game.court_id, new_date, start_minute, end_minute, game.id,
                exclude_game_id=game.id,
            )

        updated = await self._db.execute(
            """
            UPDATE games
            SET start_time = ?, end_time = ?, duration_minutes = ?,
                capacity = COALESCE(?, capacity),
                skill_level = COALESCE(?, skill_level),
                description = COALESCE(?, description),
                version = version + 1, updated_at = ?
            WHERE id = ? AND status = 'scheduled'
              AND start_time = ? AND duration_minutes = ?
              AND COALESCE(?, capacity) >= (SELECT COUNT(*) FROM roster_entries r
                                            WHERE r.game_id = games.id AND r.state = 'confirmed')
            """,
            (
                ts(new_start), ts(new_start + timedelta(minutes=new_duration)), new_duration,
                capacity, skill_level, description,
                ts(self._clock.now()), game.id,
                ts(game.start_time), game.duration_minutes, capacity,
            ),
        )
        if updated != 1:
            if not same_range:
                await self._availability.release(
                    game.court_id, new_date, start_minute, end_minute, game_id=game.id
                )
            current = await self.get(game.id)
            require_status(current, GameStatus.SCHEDULED)
            _check_capacity(current, capacity)
            logger.warning("Reschedule of game %s lost a concurrent update", game.id)
            raise InvalidStatus(
                game.id,
                current.status.value,
                GameStatus.SCHEDULED.value,
                "The game changed while it was being updated, please retry.",
            )

        if not same_range:
            await self._availability.release(
                game.court_id, old_date, old_start, old_end, game_id=game.id
            )
        logger.info("Game %s rescheduled to %s (%d min)", game.id, new_start, new_duration)
        return await self.get(game.id)

    async def update_details(
        self,
        game: Game,
        *,
        capacity: int | None = None,
        skill_level: str | None = None,
        description: str | None = None,
    ) -> Game:
        """Edit non-time fields while scheduled; capacity never drops below the roster."""
        require_status(game, GameStatus.SCHEDULED)
        updated = await self._db.execute(
            """
            UPDATE games
            SET capacity = COALESCE(?, capacity),
                skill_level = COALESCE(?, skill_level),
                description = COALESCE(?, description),
                version = version + 1, updated_at = ?
            WHERE id = ? AND status = 'scheduled'
              AND COALESCE(?, capacity) >= (SELECT COUNT(*) FROM roster_entries r
                                            WHERE r.game_id = games.id AND r.state = 'confirmed')
            """,
            (capacity, skill_level, description, ts(self._clock.now()), game.id, capacity),
        )
        if updated != 1:
            current = await self.get(game.id)
            require_status(current, GameStatus.SCHEDULED)
            _check_capacity(current, capacity)
            raise InvalidStatus(
                game.id,
                current.status.value,
                GameStatus.SCHEDULED.value,
                "The game changed while it was being updated, please retry.",
            )
        return await self.get(game.id)

