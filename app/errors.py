"""
Error taxonomy for the booking engine.

Every business-rule failure is a ``BookingError`` subclass carrying the
HTTP status it maps to, a stable machine-readable ``code`` and optional
``details``.  Services raise them; the exception handlers registered in
``app.main`` render them.  None of them represent defects, so they are
logged at WARNING at most.  ``BookingSystemError`` is the one class that
does signal an unexpected failure.
"""

from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """Base application error class."""

    status_code = 400
    code = "booking_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BookingError):
    """Raised when input is malformed or out of range."""

    status_code = 422
    code = "validation_error"


class NotFound(BookingError):
    """Raised when a court or game id is unknown."""

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(
            f"{resource} {resource_id} not found",
            {"resource": resource, "id": resource_id},
        )


class PermissionDenied(BookingError):
    """Raised when the actor is neither the creator nor an admin."""

    status_code = 403
    code = "permission_denied"


class NotAvailable(BookingError):
    """The requested court time overlaps an existing booking."""

    status_code = 409
    code = "not_available"


class InvalidStatus(BookingError):
    """Operation attempted against a game in the wrong lifecycle state."""

    status_code = 409
    code = "invalid_status"

    def __init__(
        self,
        game_id: str,
        current_status: str,
        required_status: str,
        reason: str | None = None,
    ) -> None:
        message = (
            f'Cannot perform this operation on a game with status "{current_status}". '
            f"Expected status: {required_status}."
        )
        if reason:
            message = f"{message} {reason}"
        super().__init__(
            message,
            {
                "game_id": game_id,
                "current_status": current_status,
                "required_status": required_status,
            },
        )
        self.current_status = current_status
        self.required_status = required_status


class GameFull(BookingError):
    status_code = 409
    code = "game_full"

    def __init__(self, game_id: str, capacity: int) -> None:
        super().__init__(
            f"Game {game_id} is full ({capacity} players)",
            {"game_id": game_id, "capacity": capacity},
        )


class AlreadyJoined(BookingError):
    status_code = 409
    code = "already_joined"

    def __init__(self, game_id: str, player: str) -> None:
        super().__init__(
            f"{player} is already part of game {game_id}",
            {"game_id": game_id, "player": player},
        )


class NotAParticipant(BookingError):
    status_code = 409
    code = "not_a_participant"

    def __init__(self, game_id: str, player: str) -> None:
        super().__init__(
            f"{player} is not a participant of game {game_id}",
            {"game_id": game_id, "player": player},
        )


class CreatorCannotLeave(BookingError):
    status_code = 409
    code = "creator_cannot_leave"

    def __init__(self, game_id: str) -> None:
        super().__init__(
            "Game creator cannot leave the game, cancel it instead",
            {"game_id": game_id},
        )


class SlotConflict(BookingError):
    """Availability-level overlap; surfaced to callers as ``NotAvailable``."""

    status_code = 409
    code = "slot_conflict"


class BookingSystemError(BookingError):
    """Unexpected failure (persistence unreachable, invariant broken)."""

    status_code = 500
    code = "system_error"
