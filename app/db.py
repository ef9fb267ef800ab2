"""
SQLite database layer using aiosqlite.

Stores courts, court slots, games, rosters and notifications.
Tables are created automatically on first connect.

The connection runs in autocommit mode: every statement is its own
transaction.  The booking invariants rely on that, because each critical
section (reserve, join, leave, cancel, sweep step) is written as a single
conditional statement whose WHERE clause re-checks the precondition while
SQLite holds the write lock.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from app.config import DB_PATH, DB_TIMEOUT
from app.errors import BookingSystemError
from app.models import (
    Court,
    Game,
    Location,
    Notification,
    Reservation,
    RosterEntry,
)

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_Params = Sequence[Any] | Mapping[str, Any]


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS courts (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    lat             REAL NOT NULL,
    lng             REAL NOT NULL,
    address         TEXT NOT NULL,
    sport_types     TEXT NOT NULL,   -- JSON array
    description     TEXT,
    status          TEXT NOT NULL DEFAULT 'active',
    created_by      TEXT NOT NULL,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS court_slots (
    id              TEXT PRIMARY KEY,
    court_id        TEXT NOT NULL,
    slot_date       TEXT NOT NULL,   -- ISO date
    start_minute    INTEGER NOT NULL,
    end_minute      INTEGER NOT NULL,
    is_booked       INTEGER NOT NULL DEFAULT 1,
    game_id         TEXT,
    created_at      TEXT NOT NULL,
    CHECK (0 <= start_minute AND start_minute < end_minute AND end_minute <= 1440),
    FOREIGN KEY (court_id) REFERENCES courts(id)
);

CREATE INDEX IF NOT EXISTS idx_slots_court_date ON court_slots(court_id, slot_date, is_booked);
CREATE INDEX IF NOT EXISTS idx_slots_game ON court_slots(game_id);

CREATE TABLE IF NOT EXISTS games (
    id              TEXT PRIMARY KEY,
    court_id        TEXT NOT NULL,
    creator         TEXT NOT NULL,
    sport_type      TEXT NOT NULL,
    start_time      TEXT NOT NULL,
    end_time        TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL CHECK (duration_minutes >= 30),
    format          TEXT NOT NULL,
    capacity        INTEGER NOT NULL CHECK (capacity >= 2),
    skill_level     TEXT NOT NULL DEFAULT 'any',
    description     TEXT,
    is_private      INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'scheduled',
    cancel_reason   TEXT,
    version         INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    FOREIGN KEY (court_id) REFERENCES courts(id)
);

CREATE INDEX IF NOT EXISTS idx_games_start ON games(start_time);
CREATE INDEX IF NOT EXISTS idx_games_status ON games(status, start_time);
CREATE INDEX IF NOT EXISTS idx_games_creator ON games(creator);
CREATE INDEX IF NOT EXISTS idx_games_court ON games(court_id);

CREATE TABLE IF NOT EXISTS roster_entries (
    game_id         TEXT NOT NULL,
    player          TEXT NOT NULL,
    joined_at       TEXT NOT NULL,
    state           TEXT NOT NULL DEFAULT 'confirmed',
    position        INTEGER NOT NULL,
    PRIMARY KEY (game_id, player),
    FOREIGN KEY (game_id) REFERENCES games(id)
);

CREATE INDEX IF NOT EXISTS idx_roster_player ON roster_entries(player);

-- A game row and its creator's roster entry land in one statement.
CREATE TRIGGER IF NOT EXISTS trg_game_seed_creator AFTER INSERT ON games
BEGIN
    INSERT INTO roster_entries (game_id, player, joined_at, state, position)
    VALUES (NEW.id, NEW.creator, NEW.created_at, 'confirmed', 0);
END;

-- Roster writes bump the game version inside the same statement transaction.
CREATE TRIGGER IF NOT EXISTS trg_roster_insert AFTER INSERT ON roster_entries
BEGIN
    UPDATE games SET version = version + 1 WHERE id = NEW.game_id;
END;

CREATE TRIGGER IF NOT EXISTS trg_roster_delete AFTER DELETE ON roster_entries
BEGIN
    UPDATE games SET version = version + 1 WHERE id = OLD.game_id;
END;

CREATE TABLE IF NOT EXISTS notifications (
    id              TEXT PRIMARY KEY,
    recipient       TEXT NOT NULL,
    game_id         TEXT NOT NULL,
    kind            TEXT NOT NULL,
    title           TEXT NOT NULL,
    message         TEXT NOT NULL,
    scheduled_for   TEXT NOT NULL,
    expires_at      TEXT,
    delivered       INTEGER NOT NULL DEFAULT 0,
    voided          INTEGER NOT NULL DEFAULT 0,
    is_read         INTEGER NOT NULL DEFAULT 0,
    read_at         TEXT,
    created_at      TEXT NOT NULL,
    FOREIGN KEY (game_id) REFERENCES games(id)
);

CREATE INDEX IF NOT EXISTS idx_notif_due ON notifications(delivered, voided, scheduled_for);
CREATE INDEX IF NOT EXISTS idx_notif_recipient ON notifications(recipient, is_read);
CREATE INDEX IF NOT EXISTS idx_notif_game ON notifications(game_id);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def ts(dt: datetime) -> str:
    """Fixed-width UTC timestamp so that text comparison equals time order."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime(_TS_FORMAT)


def parse_ts(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.strptime(raw, _TS_FORMAT).replace(tzinfo=UTC)


def row_to_court(row: aiosqlite.Row) -> Court:
    """Convert a database row to a Court model."""
    return Court(
        id=row["id"],
        name=row["name"],
        location=Location(lat=row["lat"], lng=row["lng"], address=row["address"]),
        sport_types=json.loads(row["sport_types"]),
        description=row["description"],
        status=row["status"],
        created_by=row["created_by"],
        created_at=parse_ts(row["created_at"]),
    )


def row_to_reservation(row: aiosqlite.Row) -> Reservation:
    return Reservation(
        id=row["id"],
        court_id=row["court_id"],
        slot_date=date.fromisoformat(row["slot_date"]),
        start_minute=row["start_minute"],
        end_minute=row["end_minute"],
        game_id=row["game_id"],
    )


def row_to_roster_entry(row: aiosqlite.Row) -> RosterEntry:
    return RosterEntry(
        player=row["player"],
        joined_at=parse_ts(row["joined_at"]),
        state=row["state"],
        position=row["position"],
    )


def row_to_game(row: aiosqlite.Row, roster: Iterable[aiosqlite.Row] = ()) -> Game:
    """Convert a games row plus its roster rows to a Game model."""
    return Game(
        id=row["id"],
        court_id=row["court_id"],
        creator=row["creator"],
        sport_type=row["sport_type"],
        start_time=parse_ts(row["start_time"]),
        duration_minutes=row["duration_minutes"],
        format=row["format"],
        capacity=row["capacity"],
        skill_level=row["skill_level"],
        description=row["description"],
        is_private=bool(row["is_private"]),
        roster=sorted(
            (row_to_roster_entry(r) for r in roster), key=lambda e: e.position
        ),
        status=row["status"],
        cancel_reason=row["cancel_reason"],
        version=row["version"],
        created_at=parse_ts(row["created_at"]),
        updated_at=parse_ts(row["updated_at"]),
    )


def row_to_notification(row: aiosqlite.Row) -> Notification:
    return Notification(
        id=row["id"],
        recipient=row["recipient"],
        game_id=row["game_id"],
        kind=row["kind"],
        title=row["title"],
        message=row["message"],
        scheduled_for=parse_ts(row["scheduled_for"]),
        expires_at=parse_ts(row["expires_at"]),
        delivered=bool(row["delivered"]),
        voided=bool(row["voided"]),
        is_read=bool(row["is_read"]),
        read_at=parse_ts(row["read_at"]),
        created_at=parse_ts(row["created_at"]),
    )


# ══════════════════════════════════════════════════════════════════════════
#                    CONNECTION
# ══════════════════════════════════════════════════════════════════════════


class Database:
    """
    One aiosqlite connection plus thin query helpers.

    Every sqlite3 failure (lock timeout, disk error, constraint breach) is
    re-raised as ``BookingSystemError`` so callers see one failure type for
    "persistence did not answer".
    """

    def __init__(self, path: str = DB_PATH, *, timeout: float = DB_TIMEOUT) -> None:
        self._path = path
        self._timeout = timeout
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database and create tables if they don't exist."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(
            self._path, timeout=self._timeout, isolation_level=None
        )
        self._conn.row_factory = aiosqlite.Row
        if self._path != ":memory:":
            await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(_SCHEMA)
        logger.info("Database initialized at %s", self._path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("Database connection closed")

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise BookingSystemError("Database not connected, call connect() first")
        return self._conn

    # ── Query helpers ─────────────────────────────────────────────────

    async def execute(self, sql: str, params: _Params = ()) -> int:
        """Run one write statement and return the number of affected rows."""
        try:
            async with self.conn.execute(sql, params) as cur:
                return cur.rowcount
        except sqlite3.Error as exc:
            raise _system_error(sql, exc) from exc

    async def fetchone(self, sql: str, params: _Params = ()) -> aiosqlite.Row | None:
        try:
            async with self.conn.execute(sql, params) as cur:
                return await cur.fetchone()
        except sqlite3.Error as exc:
            raise _system_error(sql, exc) from exc

    async def fetchall(self, sql: str, params: _Params = ()) -> list[aiosqlite.Row]:
        try:
            async with self.conn.execute(sql, params) as cur:
                return list(await cur.fetchall())
        except sqlite3.Error as exc:
            raise _system_error(sql, exc) from exc

    async def fetch_game(self, game_id: str) -> Game | None:
        """Load one game with its roster."""
        row = await self.fetchone("SELECT * FROM games WHERE id = ?", (game_id,))
        if row is None:
            return None
        roster = await self.fetchall(
            "SELECT * FROM roster_entries WHERE game_id = ? ORDER BY position",
            (game_id,),
        )
        return row_to_game(row, roster)

    async def fetch_games(self, rows: list[aiosqlite.Row]) -> list[Game]:
        """Attach rosters to a page of game rows with one extra query."""
        if not rows:
            return []
        ids = [r["id"] for r in rows]
        placeholders = ",".join("?" for _ in ids)
        roster_rows = await self.fetchall(
            f"SELECT * FROM roster_entries WHERE game_id IN ({placeholders}) ORDER BY position",
            ids,
        )
        by_game: dict[str, list[aiosqlite.Row]] = {gid: [] for gid in ids}
        for r in roster_rows:
            by_game[r["game_id"]].append(r)
        return [row_to_game(r, by_game[r["id"]]) for r in rows]


def _system_error(sql: str, exc: sqlite3.Error) -> BookingSystemError:
    operation = sql.strip().split(None, 1)[0].upper() if sql.strip() else "?"
    logger.error("Database %s failed: %s", operation, exc)
    return BookingSystemError(
        "The booking store is unavailable, please retry later",
        {"operation": operation},
    )
