"""
Read-side queries over games.

All listings are SQL-paginated and ordered by ``(start_time, id)`` so
pages are stable when several games share a start time.  Private games
are left out of public listings but remain reachable by id and appear in
their members' own lists.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Literal

from app.db import Database, ts
from app.errors import NotFound, ValidationError
from app.models import Game, GameStats
from app.services.clock import Clock, as_utc
from app.services.courts import CourtRepository

logger = logging.getLogger(__name__)

PlayerRole = Literal["all", "created", "joined"]

# How far back each stats timeframe reaches.
TIMEFRAMES: dict[str, timedelta] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


class GameRepository:
    def __init__(self, db: Database, courts: CourtRepository, clock: Clock) -> None:
        self._db = db
        self._courts = courts
        self._clock = clock

    async def get(self, game_id: str) -> Game:
        game = await self._db.fetch_game(game_id)
        if game is None:
            raise NotFound("Game", game_id)
        return game

    async def _page(
        self, where: str, params: list, limit: int, offset: int
    ) -> tuple[list[Game], int]:
        total_row = await self._db.fetchone(
            f"SELECT COUNT(*) AS total FROM games g WHERE {where}", params
        )
        rows = await self._db.fetchall(
            f"SELECT g.* FROM games g WHERE {where} ORDER BY g.start_time, g.id LIMIT ? OFFSET ?",
            [*params, limit, offset],
        )
        return await self._db.fetch_games(rows), total_row["total"]

    async def list_upcoming(
        self,
        *,
        sport_type: str | None = None,
        court_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        court_ids: list[str] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Game], int]:
        """Public scheduled games starting from now (or ``date_from``)."""
        now = self._clock.now()
        lower = max(as_utc(date_from), now) if date_from else now
        where = "g.status = 'scheduled' AND g.is_private = 0 AND g.start_time > ?"
        params: list = [ts(lower)]
        if date_to is not None:
            where += " AND g.start_time <= ?"
            params.append(ts(as_utc(date_to)))
        if sport_type:
            where += " AND g.sport_type = ?"
            params.append(sport_type)
        if court_id:
            where += " AND g.court_id = ?"
            params.append(court_id)
        if court_ids is not None:
            if not court_ids:
                return [], 0
            where += f" AND g.court_id IN ({','.join('?' for _ in court_ids)})"
            params.extend(court_ids)
        return await self._page(where, params, limit, offset)

    async def nearby(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        *,
        sport_type: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Game], int]:
        """Upcoming public games on courts within ``radius_m`` of the point."""
        courts = await self._courts.nearby(lat, lng, radius_m)
        return await self.list_upcoming(
            sport_type=sport_type,
            date_from=date_from,
            date_to=date_to,
            court_ids=[c.id for c in courts],
            limit=limit,
            offset=offset,
        )

    async def list_for_player(
        self,
        player: str,
        *,
        role: PlayerRole = "all",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Game], int]:
        """Every game (any status) the player created, joined, or both."""
        if role == "created":
            where = "g.creator = ?"
            params: list = [player]
        elif role == "joined":
            where = (
                "g.creator != ? AND EXISTS (SELECT 1 FROM roster_entries r "
                "WHERE r.game_id = g.id AND r.player = ?)"
            )
            params = [player, player]
        elif role == "all":
            where = (
                "(g.creator = ? OR EXISTS (SELECT 1 FROM roster_entries r "
                "WHERE r.game_id = g.id AND r.player = ?))"
            )
            params = [player, player]
        else:
            raise ValidationError("Unknown role filter", {"role": role})
        return await self._page(where, params, limit, offset)

    async def stats(self, timeframe: str = "week") -> GameStats:
        """Counts of games starting within the timeframe, grouped three ways."""
        if timeframe not in TIMEFRAMES:
            raise ValidationError(
                "Unknown timeframe", {"timeframe": timeframe, "allowed": list(TIMEFRAMES)}
            )
        to_date = self._clock.now()
        from_date = to_date - TIMEFRAMES[timeframe]
        params = (ts(from_date), ts(to_date))
        window = "start_time >= ? AND start_time <= ?"

        async def grouped(column: str) -> dict[str, int]:
            rows = await self._db.fetchall(
                f"SELECT {column} AS k, COUNT(*) AS n FROM games WHERE {window} GROUP BY {column}",
                params,
            )
            return {r["k"]: r["n"] for r in rows}

        by_status = await grouped("status")
        return GameStats(
            timeframe=timeframe,
            from_date=from_date,
            to_date=to_date,
            total=sum(by_status.values()),
            by_status=by_status,
            by_sport=await grouped("sport_type"),
            by_skill_level=await grouped("skill_level"),
        )
