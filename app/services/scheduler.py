"""
Notification scheduler — reminders and immediate game notifications.

A reminder is a notification of kind ``game_reminder`` with
``scheduled_for = start - minutes_before`` and ``expires_at = start``.
It is never created once its send time has passed, and it is voided
(never deleted) when the game is cancelled or moved, or when its
recipient leaves the game.

Immediate notifications (player joined/left, game cancelled/updated) are
due at creation and never expire.  Delivery is not done here: the
``ReminderDispatcher`` worker pulls ``due_notifications`` and hands each
record to a delivery channel, then calls ``mark_delivered``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timedelta
from uuid import uuid4

from app.config import REMINDER_MINUTES_BEFORE
from app.db import Database, row_to_notification, ts
from app.errors import NotFound, ValidationError
from app.models import Game, Notification, NotificationKind
from app.services.clock import Clock

logger = logging.getLogger(__name__)


def _check_lead(minutes: int) -> None:
    if minutes <= 0:
        raise ValidationError(
            f"Reminder lead time must be positive, got {minutes} minutes",
            {"minutes_before": minutes},
        )


_REMINDER = NotificationKind.GAME_REMINDER.value

# Undelivered, not voided, send time reached, not yet expired; reminders
# additionally require the game not to be cancelled.
_DUE = """
    n.delivered = 0 AND n.voided = 0
    AND n.scheduled_for <= :now
    AND (n.expires_at IS NULL OR :now < n.expires_at)
    AND (n.kind != 'game_reminder' OR g.status != 'cancelled')
"""

# What a recipient sees in the inbox.
_VISIBLE = """
    recipient = :recipient AND voided = 0
    AND scheduled_for <= :now
    AND (expires_at IS NULL OR expires_at > :now)
"""


class NotificationScheduler:
    def __init__(
        self,
        db: Database,
        clock: Clock,
        *,
        minutes_before: int = REMINDER_MINUTES_BEFORE,
    ) -> None:
        self._db = db
        self._clock = clock
        _check_lead(minutes_before)
        self.minutes_before = minutes_before

    # ── Creating records ──────────────────────────────────────────────

    async def schedule_reminder(
        self,
        game: Game,
        player: str,
        minutes_before: int | None = None,
    ) -> Notification | None:
        """
        Schedule a reminder for ``player`` ahead of ``game``.

        Returns ``None`` without error when the reminder time is already
        past, e.g. a game created less than ``minutes_before`` ahead.
        A lead time of zero or less is rejected with ``ValidationError``.
        """
        lead = self.minutes_before if minutes_before is None else minutes_before
        _check_lead(lead)
        scheduled_for = game.start_time - timedelta(minutes=lead)
        if scheduled_for <= self._clock.now():
            logger.debug("Reminder for %s on game %s skipped: time already passed", player, game.id)
            return None

        start_label = game.start_time.strftime("%Y-%m-%d %H:%M UTC")
        return await self._insert(
            recipient=player,
            game_id=game.id,
            kind=NotificationKind.GAME_REMINDER,
            title="Game reminder",
            message=f"Your {game.sport_type} game starts in {lead} minutes ({start_label}).",
            scheduled_for=scheduled_for,
            expires_at=game.start_time,
        )

    async def notify(
        self,
        recipient: str,
        game: Game,
        kind: NotificationKind,
        title: str,
        message: str,
    ) -> Notification:
        """Record an immediate notification; due now, never expires."""
        return await self._insert(
            recipient=recipient,
            game_id=game.id,
            kind=kind,
            title=title,
            message=message,
            scheduled_for=self._clock.now(),
            expires_at=None,
        )

    async def notify_roster(
        self,
        game: Game,
        kind: NotificationKind,
        title: str,
        message: str,
        *,
        exclude: str | None = None,
    ) -> list[Notification]:
        """Notify every current roster member except ``exclude``."""
        sent = []
        for entry in game.roster:
            if entry.player == exclude:
                continue
            sent.append(await self.notify(entry.player, game, kind, title, message))
        return sent

    async def _insert(
        self,
        *,
        recipient: str,
        game_id: str,
        kind: NotificationKind,
        title: str,
        message: str,
        scheduled_for: datetime,
        expires_at: datetime | None,
    ) -> Notification:
        notification_id = str(uuid4())
        await self._db.execute(
            """
            INSERT INTO notifications
                (id, recipient, game_id, kind, title, message,
                 scheduled_for, expires_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                notification_id, recipient, game_id, kind.value, title, message,
                ts(scheduled_for), ts(expires_at) if expires_at else None,
                ts(self._clock.now()),
            ),
        )
        logger.debug("Scheduled %s for %s at %s", kind.value, recipient, scheduled_for)
        return await self.get(notification_id)

    async def get(self, notification_id: str) -> Notification:
        row = await self._db.fetchone(
            "SELECT * FROM notifications WHERE id = ?", (notification_id,)
        )
        if row is None:
            raise NotFound("Notification", notification_id)
        return row_to_notification(row)

    # ── Dispatch side ─────────────────────────────────────────────────

    async def due_reminders(self, now: datetime | None = None) -> AsyncIterator[Notification]:
        """Reminders whose window ``[scheduled_for, expires_at)`` contains ``now``."""
        async for notification in self._due(now, reminders_only=True):
            yield notification

    async def due_notifications(self, now: datetime | None = None) -> AsyncIterator[Notification]:
        """Everything the dispatcher should hand to delivery right now."""
        async for notification in self._due(now, reminders_only=False):
            yield notification

    async def _due(self, now: datetime | None, *, reminders_only: bool) -> AsyncIterator[Notification]:
        sql = f"""
            SELECT n.* FROM notifications n JOIN games g ON g.id = n.game_id
            WHERE {_DUE}
        """
        if reminders_only:
            sql += f" AND n.kind = '{_REMINDER}'"
        sql += " ORDER BY n.scheduled_for, n.id"
        params = {"now": ts(now or self._clock.now())}
        # Materialise first so callers may write (mark_delivered) while iterating.
        rows = await self._db.fetchall(sql, params)
        for row in rows:
            yield row_to_notification(row)

    async def mark_delivered(self, notification_id: str) -> bool:
        """
        Flag a notification as delivered.

        Returns False when it was already delivered (or voided), so two
        dispatchers never both report the same record as theirs.
        """
        updated = await self._db.execute(
            "UPDATE notifications SET delivered = 1 WHERE id = ? AND delivered = 0 AND voided = 0",
            (notification_id,),
        )
        return updated == 1

    async def unmark_delivered(self, notification_id: str) -> None:
        """Drop a delivery claim after a failed send so the next tick retries it."""
        await self._db.execute(
            "UPDATE notifications SET delivered = 0 WHERE id = ?", (notification_id,)
        )

    async def void_for_game(self, game_id: str, recipient: str | None = None) -> int:
        """Void pending reminders of a game, optionally only one recipient's."""
        sql = """
            UPDATE notifications SET voided = 1
            WHERE game_id = ? AND kind = ? AND delivered = 0 AND voided = 0
        """
        params: list = [game_id, _REMINDER]
        if recipient is not None:
            sql += " AND recipient = ?"
            params.append(recipient)
        voided = await self._db.execute(sql, params)
        if voided:
            logger.info("Voided %d reminder(s) for game %s", voided, game_id)
        return voided

    # ── Inbox ─────────────────────────────────────────────────────────

    async def list_for_recipient(
        self,
        recipient: str,
        *,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        """One page of a user's visible notifications (newest first) and the total."""
        where = _VISIBLE + (" AND is_read = 0" if unread_only else "")
        params = {"recipient": recipient, "now": ts(self._clock.now())}
        total_row = await self._db.fetchone(
            f"SELECT COUNT(*) AS total FROM notifications WHERE {where}", params
        )
        rows = await self._db.fetchall(
            f"""
            SELECT * FROM notifications WHERE {where}
            ORDER BY scheduled_for DESC, id
            LIMIT :limit OFFSET :offset
            """,
            {**params, "limit": limit, "offset": offset},
        )
        return [row_to_notification(r) for r in rows], total_row["total"]

    async def count_unread(self, recipient: str) -> int:
        row = await self._db.fetchone(
            f"SELECT COUNT(*) AS total FROM notifications WHERE {_VISIBLE} AND is_read = 0",
            {"recipient": recipient, "now": ts(self._clock.now())},
        )
        return row["total"]

    async def mark_read(self, notification_id: str, recipient: str) -> Notification:
        """Mark one of ``recipient``'s notifications read; others' ids are NotFound."""
        await self._db.execute(
            """
            UPDATE notifications SET is_read = 1, read_at = ?
            WHERE id = ? AND recipient = ? AND is_read = 0
            """,
            (ts(self._clock.now()), notification_id, recipient),
        )
        notification = await self.get(notification_id)
        if notification.recipient != recipient:
            raise NotFound("Notification", notification_id)
        return notification

    async def mark_all_read(self, recipient: str) -> int:
        return await self._db.execute(
            f"UPDATE notifications SET is_read = 1, read_at = :read_at WHERE {_VISIBLE} AND is_read = 0",
            {"recipient": recipient, "now": ts(self._clock.now()), "read_at": ts(self._clock.now())},
        )
