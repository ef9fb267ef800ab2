"""
Booking orchestrator — the public face of the booking engine.

Coordinates the availability model, lifecycle, roster and scheduler for
each user-level operation:

    create  : validate → reserve slot → insert game (creator seeded) → creator reminder
    join    : status check → roster join → reminder for the player → notify creator
    leave   : status check → roster leave → void the player's reminders → notify creator
    cancel  : authorize → lifecycle cancel → release slot → void reminders → notify roster
    update  : authorize → reschedule and/or edit details → refresh reminders → notify roster

If a step after a successful reservation fails, the reservation is
released again (and a game row that did land is cancelled) before the
error propagates.  If the reservation itself fails with an unknown
outcome, the slot table is re-read by game id and anything that landed is
released.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from uuid import uuid4

from app.config import MAX_BOOKING_HORIZON_DAYS
from app.constants import (
    GAME_FORMATS,
    MAX_CAPACITY,
    MAX_DESCRIPTION_LENGTH,
    MAX_DURATION_MINUTES,
    MIN_CAPACITY,
    MIN_DURATION_MINUTES,
    SKILL_LEVELS,
)
from app.errors import (
    BookingSystemError,
    NotAvailable,
    PermissionDenied,
    SlotConflict,
    ValidationError,
)
from app.models import (
    Court,
    Game,
    GameCreate,
    GameStatus,
    GameUpdate,
    NotificationKind,
    Reservation,
    UserInfo,
)
from app.services.availability import AvailabilityModel, slot_range
from app.services.clock import Clock, as_utc
from app.services.courts import CourtRepository
from app.services.lifecycle import GameLifecycle, require_status
from app.services.roster import RosterManager
from app.services.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)

ABORTED_REASON = "Booking could not be completed"


class BookingOrchestrator:
    def __init__(
        self,
        *,
        courts: CourtRepository,
        availability: AvailabilityModel,
        lifecycle: GameLifecycle,
        roster: RosterManager,
        scheduler: NotificationScheduler,
        clock: Clock,
    ) -> None:
        self._courts = courts
        self._availability = availability
        self._lifecycle = lifecycle
        self._roster = roster
        self._scheduler = scheduler
        self._clock = clock

    # ══════════════════════════════════════════════════════════════════
    #                    CREATE
    # ══════════════════════════════════════════════════════════════════

    async def create_game(self, data: GameCreate, actor: UserInfo) -> Game:
        """
        Book a court slot and create a scheduled game around it.

        Raises:
            ValidationError: bad input, unknown sport for the court, past
                or too-distant start, out-of-range duration or capacity.
            NotFound: unknown court.
            NotAvailable: the requested time overlaps another game.
            BookingSystemError: persistence failed; nothing is left booked.
        """
        data = data.model_copy(update={"start_time": as_utc(data.start_time)})
        self._validate_fields(
            format=data.format,
            skill_level=data.skill_level,
            duration_minutes=data.duration_minutes,
            capacity=data.capacity,
            description=data.description,
        )
        slot_date, start_minute, end_minute = self._validate_time(
            data.start_time, data.duration_minutes
        )
        court = await self._courts.get(data.court_id)
        self._validate_court(court, data.sport_type)

        game_id = str(uuid4())
        try:
            reservation = await self._availability.reserve(
                court.id, slot_date, start_minute, end_minute, game_id
            )
        except SlotConflict as exc:
            raise NotAvailable(exc.message, exc.details) from exc
        except BookingSystemError:
            await self._reconcile(game_id)
            raise

        try:
            game = await self._lifecycle.create(game_id, data, actor.email)
            await self._scheduler.schedule_reminder(game, actor.email)
        except Exception:
            await self._compensate(game_id, reservation)
            raise

        return game

    async def _reconcile(self, game_id: str) -> None:
        """After an unknown-outcome reserve, release whatever did land."""
        reservation = await self._availability.find_reservation(game_id)
        if reservation is not None:
            logger.warning("Reserve for game %s landed despite an error; releasing", game_id)
            await self._release(reservation)

    async def _compensate(self, game_id: str, reservation: Reservation) -> None:
        logger.warning("Game %s creation failed after reserve; compensating", game_id)
        try:
            await self._lifecycle.abort(game_id, ABORTED_REASON)
            await self._release(reservation)
        except BookingSystemError:
            logger.exception(
                "Compensation for game %s failed; slot %s may stay booked",
                game_id, reservation.id,
            )

    async def _release(self, reservation: Reservation) -> None:
        await self._availability.release(
            reservation.court_id,
            reservation.slot_date,
            reservation.start_minute,
            reservation.end_minute,
            game_id=reservation.game_id,
        )

    # ══════════════════════════════════════════════════════════════════
    #                    ROSTER
    # ══════════════════════════════════════════════════════════════════

    async def join_game(self, game_id: str, actor: UserInfo) -> Game:
        require_status(await self._lifecycle.get(game_id), GameStatus.SCHEDULED)
        game = await self._roster.join(game_id, actor.email)

        await self._scheduler.schedule_reminder(game, actor.email)
        await self._scheduler.notify(
            game.creator,
            game,
            NotificationKind.PLAYER_JOINED,
            "New player joined",
            f"{actor.email} joined your {game.sport_type} game "
            f"({len(game.confirmed_players)}/{game.capacity} players).",
        )
        return game

    async def leave_game(self, game_id: str, actor: UserInfo) -> Game:
        require_status(await self._lifecycle.get(game_id), GameStatus.SCHEDULED)
        game = await self._roster.leave(game_id, actor.email)

        await self._scheduler.void_for_game(game_id, recipient=actor.email)
        await self._scheduler.notify(
            game.creator,
            game,
            NotificationKind.PLAYER_LEFT,
            "Player left",
            f"{actor.email} left your {game.sport_type} game "
            f"({len(game.confirmed_players)}/{game.capacity} players).",
        )
        return game

    # ══════════════════════════════════════════════════════════════════
    #                    CANCEL / UPDATE
    # ══════════════════════════════════════════════════════════════════

    async def cancel_game(self, game_id: str, actor: UserInfo, reason: str) -> Game:
        """Cancel a scheduled game; only its creator or an admin may do so."""
        game = await self._lifecycle.get(game_id)
        self._authorize(game, actor, "cancel")

        game = await self._lifecycle.cancel(game_id, reason)
        slot_date, start_minute, end_minute = slot_range(game.start_time, game.duration_minutes)
        await self._availability.release(
            game.court_id, slot_date, start_minute, end_minute, game_id=game.id
        )
        await self._scheduler.void_for_game(game.id)
        await self._scheduler.notify_roster(
            game,
            NotificationKind.GAME_CANCELLED,
            "Game cancelled",
            f"The {game.sport_type} game on "
            f"{game.start_time.strftime('%Y-%m-%d %H:%M UTC')} was cancelled. Reason: {reason}",
            exclude=actor.email,
        )
        return game

    async def update_game(self, game_id: str, actor: UserInfo, changes: GameUpdate) -> Game:
        """
        Edit a scheduled game.

        Start time and duration go through the availability model, and
        the other fields are written by the same conditional update.
        Reminders follow the new start time.
        """
        game = await self._lifecycle.get(game_id)
        self._authorize(game, actor, "update")
        require_status(game, GameStatus.SCHEDULED)

        self._validate_fields(
            skill_level=changes.skill_level,
            duration_minutes=changes.duration_minutes,
            capacity=changes.capacity,
            description=changes.description,
        )

        new_start = as_utc(changes.start_time) if changes.start_time else game.start_time
        new_duration = changes.duration_minutes or game.duration_minutes
        time_changed = (new_start, new_duration) != (game.start_time, game.duration_minutes)
        details_changed = any(
            v is not None for v in (changes.capacity, changes.skill_level, changes.description)
        )
        if not time_changed and not details_changed:
            return game
        if changes.capacity is not None and changes.capacity < len(game.confirmed_players):
            raise ValidationError(
                "Capacity cannot be lower than the number of confirmed players",
                {"capacity": changes.capacity, "confirmed": len(game.confirmed_players)},
            )

        if time_changed:
            self._validate_time(new_start, new_duration)
            try:
                game = await self._lifecycle.reschedule(
                    game,
                    new_start,
                    new_duration,
                    capacity=changes.capacity,
                    skill_level=changes.skill_level,
                    description=changes.description,
                )
            except SlotConflict as exc:
                raise NotAvailable(exc.message, exc.details) from exc
            await self._scheduler.void_for_game(game.id)
            for player in game.confirmed_players:
                await self._scheduler.schedule_reminder(game, player)
        else:
            game = await self._lifecycle.update_details(
                game,
                capacity=changes.capacity,
                skill_level=changes.skill_level,
                description=changes.description,
            )

        await self._scheduler.notify_roster(
            game,
            NotificationKind.GAME_UPDATED,
            "Game updated",
            f"The {game.sport_type} game now starts "
            f"{game.start_time.strftime('%Y-%m-%d %H:%M UTC')} "
            f"for {game.duration_minutes} minutes.",
            exclude=actor.email,
        )
        logger.info("Game %s updated by %s", game.id, actor.email)
        return game

    # ── Validation ────────────────────────────────────────────────────

    @staticmethod
    def _authorize(game: Game, actor: UserInfo, action: str) -> None:
        if actor.email != game.creator and not actor.is_admin:
            logger.warning("%s may not %s game %s", actor.email, action, game.id)
            raise PermissionDenied(
                f"Only the game creator or an admin can {action} this game",
                {"game_id": game.id},
            )

    @staticmethod
    def _validate_fields(
        *,
        format: str | None = None,
        skill_level: str | None = None,
        duration_minutes: int | None = None,
        capacity: int | None = None,
        description: str | None = None,
    ) -> None:
        if format is not None and format not in GAME_FORMATS:
            raise ValidationError(
                "Invalid game format", {"format": format, "allowed": list(GAME_FORMATS)}
            )
        if skill_level is not None and skill_level not in SKILL_LEVELS:
            raise ValidationError(
                "Invalid skill level",
                {"skill_level": skill_level, "allowed": list(SKILL_LEVELS)},
            )
        if duration_minutes is not None and not (
            MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES
        ):
            raise ValidationError(
                f"Duration must be between {MIN_DURATION_MINUTES} and "
                f"{MAX_DURATION_MINUTES} minutes",
                {"duration_minutes": duration_minutes},
            )
        if capacity is not None and not (MIN_CAPACITY <= capacity <= MAX_CAPACITY):
            raise ValidationError(
                f"Capacity must be between {MIN_CAPACITY} and {MAX_CAPACITY} players",
                {"capacity": capacity},
            )
        if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters",
                {"length": len(description)},
            )

    def _validate_time(self, start: datetime, duration_minutes: int) -> tuple[date, int, int]:
        now = self._clock.now()
        if start <= now:
            raise ValidationError(
                "Game date must be in the future", {"start_time": start.isoformat()}
            )
        if start > now + timedelta(days=MAX_BOOKING_HORIZON_DAYS):
            raise ValidationError(
                f"Game date cannot be more than {MAX_BOOKING_HORIZON_DAYS} days in the future",
                {"start_time": start.isoformat()},
            )
        return slot_range(start, duration_minutes)

    @staticmethod
    def _validate_court(court: Court, sport_type: str) -> None:
        if court.status != "active":
            raise ValidationError(
                "Court is not accepting bookings",
                {"court_id": court.id, "status": court.status},
            )
        if sport_type not in court.sport_types:
            raise ValidationError(
                f"Court does not support {sport_type}",
                {"court_id": court.id, "sport_types": court.sport_types},
            )
