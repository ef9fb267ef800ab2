"""Pydantic models for the Court Games API."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field


class GameStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MembershipState(str, Enum):
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    WITHDRAWN = "withdrawn"


class NotificationKind(str, Enum):
    GAME_REMINDER = "game_reminder"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    GAME_CANCELLED = "game_cancelled"
    GAME_UPDATED = "game_updated"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


# ── Identity ──────────────────────────────────────────────────────────────


class UserInfo(BaseModel):
    """Authenticated identity supplied by the session collaborator."""
    email: EmailStr = Field(..., description="Player e-mail, used as player reference")
    role: Role = Field(default=Role.USER, description="user or admin")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# ── Courts ────────────────────────────────────────────────────────────────


class Location(BaseModel):
    """Geographic point plus postal address."""
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")
    address: str = Field(..., min_length=1, description="Full address")


class CourtCreate(BaseModel):
    """Request body for registering a court (admin only)."""
    name: str = Field(..., min_length=1, max_length=200, description="Court name")
    location: Location
    sport_types: list[str] = Field(..., min_length=1, description="Supported sports")
    description: str | None = Field(None, max_length=1000)


class Court(BaseModel):
    id: str = Field(..., description="Unique court identifier")
    name: str
    location: Location
    sport_types: list[str]
    description: str | None = None
    status: str = Field(default="active", description="active, inactive or maintenance")
    created_by: str
    created_at: datetime


class Reservation(BaseModel):
    """A booked range on one court and calendar date (minutes from midnight)."""
    id: str
    court_id: str
    slot_date: date
    start_minute: int = Field(..., ge=0, le=1440)
    end_minute: int = Field(..., ge=0, le=1440)
    game_id: str | None = None

    @property
    def start_time(self) -> str:
        return f"{self.start_minute // 60:02d}:{self.start_minute % 60:02d}"

    @property
    def end_time(self) -> str:
        return f"{self.end_minute // 60:02d}:{self.end_minute % 60:02d}"


class BookedRange(BaseModel):
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    game_id: str | None = None


class AvailabilityResponse(BaseModel):
    court_id: str
    availability_date: date
    booked: list[BookedRange]


# ── Games ─────────────────────────────────────────────────────────────────


class RosterEntry(BaseModel):
    player: str = Field(..., description="Player e-mail")
    joined_at: datetime
    state: MembershipState = MembershipState.CONFIRMED
    position: int = Field(..., ge=0, description="Order in which the player joined")


class Game(BaseModel):
    id: str
    court_id: str
    creator: str
    sport_type: str
    start_time: datetime
    duration_minutes: int
    format: str
    capacity: int
    skill_level: str = "any"
    description: str | None = None
    is_private: bool = False
    roster: list[RosterEntry] = Field(default_factory=list)
    status: GameStatus = GameStatus.SCHEDULED
    cancel_reason: str | None = None
    version: int = 0
    created_at: datetime
    updated_at: datetime

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def confirmed_players(self) -> list[str]:
        return [e.player for e in self.roster if e.state == MembershipState.CONFIRMED]

    def has_player(self, player: str) -> bool:
        return any(
            e.player == player and e.state != MembershipState.WITHDRAWN
            for e in self.roster
        )


class GameCreate(BaseModel):
    """Request body for booking a game.

    Range rules (duration, capacity, horizon) are enforced by the booking
    orchestrator so they apply to every caller, not only HTTP.
    """
    court_id: str
    sport_type: str
    start_time: datetime
    duration_minutes: int
    format: str
    capacity: int
    skill_level: str = "any"
    description: str | None = None
    is_private: bool = False


class GameUpdate(BaseModel):
    start_time: datetime | None = None
    duration_minutes: int | None = None
    capacity: int | None = None
    skill_level: str | None = None
    description: str | None = None


class CancelRequest(BaseModel):
    reason: str = Field(default="Game cancelled by creator", max_length=200)


class GameStats(BaseModel):
    timeframe: str
    from_date: datetime
    to_date: datetime
    total: int
    by_status: dict[str, int]
    by_sport: dict[str, int]
    by_skill_level: dict[str, int]


class SweepReport(BaseModel):
    """Number of games advanced by one lifecycle sweep."""
    started: int = 0
    completed: int = 0


# ── Notifications ─────────────────────────────────────────────────────────


class Notification(BaseModel):
    id: str
    recipient: str
    game_id: str
    kind: NotificationKind
    title: str
    message: str
    scheduled_for: datetime
    expires_at: datetime | None = None
    delivered: bool = False
    voided: bool = False
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime


# ── Envelopes ─────────────────────────────────────────────────────────────


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class CourtListResponse(BaseModel):
    items: list[Court]
    meta: PaginationMeta


class GameListResponse(BaseModel):
    items: list[Game]
    meta: PaginationMeta


class NotificationListResponse(BaseModel):
    items: list[Notification]
    meta: PaginationMeta


class UnreadCount(BaseModel):
    count: int


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
