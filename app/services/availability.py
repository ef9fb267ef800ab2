"""
Availability model — per-court, per-date booked slot ranges.

Ranges are half-open ``[start, end)`` in minutes from midnight of the
slot date.  Two ranges on the same court and date overlap iff
``s1 < e2 and s2 < e1``; touching endpoints do not conflict.  A date
without any slot rows is fully free.

``reserve`` is one ``INSERT ... SELECT ... WHERE NOT EXISTS`` statement,
so the overlap check and the write happen under the same SQLite write
lock and two overlapping reservations can never both succeed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from uuid import uuid4

from app.constants import MINUTES_PER_DAY
from app.db import Database, row_to_reservation, ts
from app.errors import SlotConflict, ValidationError
from app.models import Reservation
from app.services.clock import Clock, as_utc

logger = logging.getLogger(__name__)

_OVERLAP = """
    court_id = ? AND slot_date = ? AND is_booked = 1
    AND start_minute < ? AND ? < end_minute
"""


def minutes_of(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def slot_range(start: datetime, duration_minutes: int) -> tuple[date, int, int]:
    """
    Map a game's time span to ``(slot_date, start_minute, end_minute)``.

    Games must end on the calendar day (UTC) they start; a game may end
    exactly at midnight.
    """
    start = as_utc(start)
    if start.second or start.microsecond:
        raise ValidationError(
            "Start time must be on a whole minute",
            {"start_time": start.isoformat()},
        )
    start_minute = minutes_of(start)
    end_minute = start_minute + duration_minutes
    if end_minute > MINUTES_PER_DAY:
        end = start + timedelta(minutes=duration_minutes)
        raise ValidationError(
            "A game must end on the same day it starts",
            {"start_time": start.isoformat(), "end_time": end.isoformat()},
        )
    return start.date(), start_minute, end_minute


def _check_range(start_minute: int, end_minute: int) -> None:
    if not (0 <= start_minute < end_minute <= MINUTES_PER_DAY):
        raise ValidationError(
            "Invalid time range",
            {"start_minute": start_minute, "end_minute": end_minute},
        )


class AvailabilityModel:
    """Owns the ``court_slots`` table; the only writer of slot rows."""

    def __init__(self, db: Database, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def check_available(
        self,
        court_id: str,
        slot_date: date,
        start_minute: int,
        end_minute: int,
        *,
        exclude_game_id: str | None = None,
    ) -> bool:
        """True when no booked slot on (court, date) overlaps [start, end)."""
        _check_range(start_minute, end_minute)
        sql = f"SELECT 1 FROM court_slots WHERE {_OVERLAP}"
        params: list = [court_id, slot_date.isoformat(), end_minute, start_minute]
        if exclude_game_id is not None:
            sql += " AND (game_id IS NULL OR game_id != ?)"
            params.append(exclude_game_id)
        row = await self._db.fetchone(sql + " LIMIT 1", params)
        return row is None

    async def reserve(
        self,
        court_id: str,
        slot_date: date,
        start_minute: int,
        end_minute: int,
        game_id: str,
        *,
        exclude_game_id: str | None = None,
    ) -> Reservation:
        """
        Atomically book [start, end) on (court, date) for ``game_id``.

        ``exclude_game_id`` ignores that game's own bookings, so a game
        can be moved onto a range overlapping its current one.

        Raises:
            SlotConflict: an overlapping booked slot already exists.
        """
        _check_range(start_minute, end_minute)
        slot_id = str(uuid4())
        exclusion = ""
        params: list = [
            slot_id, court_id, slot_date.isoformat(), start_minute, end_minute,
            game_id, ts(self._clock.now()),
            court_id, slot_date.isoformat(), end_minute, start_minute,
        ]
        if exclude_game_id is not None:
            exclusion = " AND (game_id IS NULL OR game_id != ?)"
            params.append(exclude_game_id)

        inserted = await self._db.execute(
            f"""
            INSERT INTO court_slots
                (id, court_id, slot_date, start_minute, end_minute, is_booked, game_id, created_at)
            SELECT ?, ?, ?, ?, ?, 1, ?, ?
            WHERE NOT EXISTS (
                SELECT 1 FROM court_slots WHERE {_OVERLAP}{exclusion}
            )
            """,
            params,
        )
        reservation = Reservation(
            id=slot_id,
            court_id=court_id,
            slot_date=slot_date,
            start_minute=start_minute,
            end_minute=end_minute,
            game_id=game_id,
        )
        if inserted != 1:
            logger.warning(
                "Slot conflict on court %s %s %s-%s",
                court_id, slot_date, reservation.start_time, reservation.end_time,
            )
            raise SlotConflict(
                "Court is not available at the selected time",
                {
                    "court_id": court_id,
                    "date": slot_date.isoformat(),
                    "start_time": reservation.start_time,
                    "end_time": reservation.end_time,
                },
            )

        logger.info(
            "Reserved court %s %s %s-%s for game %s",
            court_id, slot_date, reservation.start_time, reservation.end_time, game_id,
        )
        return reservation

    async def release(
        self,
        court_id: str,
        slot_date: date,
        start_minute: int,
        end_minute: int,
        *,
        game_id: str | None = None,
    ) -> int:
        """
        Mark the booked slot(s) exactly matching the range as free.

        Returns the number of slots released; releasing a free range is a
        no-op.
        """
        sql = """
            UPDATE court_slots SET is_booked = 0
            WHERE court_id = ? AND slot_date = ? AND start_minute = ?
              AND end_minute = ? AND is_booked = 1
        """
        params: list = [court_id, slot_date.isoformat(), start_minute, end_minute]
        if game_id is not None:
            sql += " AND game_id = ?"
            params.append(game_id)
        released = await self._db.execute(sql, params)
        if released:
            logger.info(
                "Released court %s %s %02d:%02d-%02d:%02d",
                court_id, slot_date,
                start_minute // 60, start_minute % 60, end_minute // 60, end_minute % 60,
            )
        return released

    async def find_reservation(self, game_id: str) -> Reservation | None:
        """Reconciliation read: the live booking held by a game, if any."""
        row = await self._db.fetchone(
            "SELECT * FROM court_slots WHERE game_id = ? AND is_booked = 1",
            (game_id,),
        )
        return row_to_reservation(row) if row else None

    async def booked_slots(self, court_id: str, slot_date: date) -> list[Reservation]:
        rows = await self._db.fetchall(
            """
            SELECT * FROM court_slots
            WHERE court_id = ? AND slot_date = ? AND is_booked = 1
            ORDER BY start_minute
            """,
            (court_id, slot_date.isoformat()),
        )
        return [row_to_reservation(r) for r in rows]
