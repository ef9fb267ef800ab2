"""
Game endpoints: booking, roster changes, cancellation and listings.

Static paths (``/nearby``, ``/stats``, ``/mine``) are declared before
``/{game_id}`` so they are not captured by it.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, status

from app.constants import DEFAULT_NEARBY_RADIUS_M
from app.dependencies import CurrentUser, PaginationParams, ServicesDep, paginate
from app.models import (
    CancelRequest,
    Game,
    GameCreate,
    GameListResponse,
    GameStats,
    GameUpdate,
)
from app.rate_limit import BOOKING, limiter

router = APIRouter(prefix="/api/games", tags=["games"])


# ── Listings ──────────────────────────────────────────────────────────────


@router.get(
    "",
    response_model=GameListResponse,
    operation_id="listGames",
    summary="List upcoming public games",
)
async def list_games(
    services: ServicesDep,
    pagination: PaginationParams = Depends(PaginationParams),
    sport_type: str | None = Query(None),
    court_id: str | None = Query(None),
    date_from: datetime | None = Query(None, description="Earliest start time"),
    date_to: datetime | None = Query(None, description="Latest start time"),
) -> GameListResponse:
    games, total = await services.games.list_upcoming(
        sport_type=sport_type,
        court_id=court_id,
        date_from=date_from,
        date_to=date_to,
        limit=pagination.page_size,
        offset=pagination.offset,
    )
    return paginate(games, total, pagination, GameListResponse)


@router.get(
    "/nearby",
    response_model=GameListResponse,
    operation_id="listNearbyGames",
    summary="Upcoming public games on courts near a point",
)
async def list_nearby_games(
    services: ServicesDep,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_m: float = Query(DEFAULT_NEARBY_RADIUS_M, gt=0, le=100_000),
    sport_type: str | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    pagination: PaginationParams = Depends(PaginationParams),
) -> GameListResponse:
    games, total = await services.games.nearby(
        lat,
        lng,
        radius_m,
        sport_type=sport_type,
        date_from=date_from,
        date_to=date_to,
        limit=pagination.page_size,
        offset=pagination.offset,
    )
    return paginate(games, total, pagination, GameListResponse)


@router.get(
    "/stats",
    response_model=GameStats,
    operation_id="getGameStats",
    summary="Game counts by status, sport and skill level",
)
async def get_game_stats(
    services: ServicesDep,
    timeframe: Literal["day", "week", "month"] = Query("week"),
) -> GameStats:
    return await services.games.stats(timeframe)


@router.get(
    "/mine",
    response_model=GameListResponse,
    operation_id="listMyGames",
    summary="Games the authenticated user created or joined",
)
async def list_my_games(
    current_user: CurrentUser,
    services: ServicesDep,
    role: Literal["all", "created", "joined"] = Query("all"),
    pagination: PaginationParams = Depends(PaginationParams),
) -> GameListResponse:
    games, total = await services.games.list_for_player(
        current_user.email,
        role=role,
        limit=pagination.page_size,
        offset=pagination.offset,
    )
    return paginate(games, total, pagination, GameListResponse)


# ── Single game ───────────────────────────────────────────────────────────


@router.post(
    "",
    response_model=Game,
    status_code=status.HTTP_201_CREATED,
    operation_id="createGame",
    summary="Book a court slot and create a game",
)
@limiter.limit(BOOKING)
async def create_game(
    request: Request,
    body: GameCreate,
    current_user: CurrentUser,
    services: ServicesDep,
) -> Game:
    return await services.booking.create_game(body, current_user)


@router.get(
    "/{game_id}",
    response_model=Game,
    operation_id="getGame",
    summary="Get a game with its roster",
)
async def get_game(game_id: str, services: ServicesDep) -> Game:
    return await services.games.get(game_id)


@router.patch(
    "/{game_id}",
    response_model=Game,
    operation_id="updateGame",
    summary="Reschedule or edit a scheduled game (creator or admin)",
)
@limiter.limit(BOOKING)
async def update_game(
    request: Request,
    game_id: str,
    body: GameUpdate,
    current_user: CurrentUser,
    services: ServicesDep,
) -> Game:
    return await services.booking.update_game(game_id, current_user, body)


@router.post(
    "/{game_id}/join",
    response_model=Game,
    operation_id="joinGame",
    summary="Join a scheduled game",
)
@limiter.limit(BOOKING)
async def join_game(
    request: Request,
    game_id: str,
    current_user: CurrentUser,
    services: ServicesDep,
) -> Game:
    return await services.booking.join_game(game_id, current_user)


@router.post(
    "/{game_id}/leave",
    response_model=Game,
    operation_id="leaveGame",
    summary="Leave a scheduled game",
)
@limiter.limit(BOOKING)
async def leave_game(
    request: Request,
    game_id: str,
    current_user: CurrentUser,
    services: ServicesDep,
) -> Game:
    return await services.booking.leave_game(game_id, current_user)


@router.post(
    "/{game_id}/cancel",
    response_model=Game,
    operation_id="cancelGame",
    summary="Cancel a scheduled game (creator or admin)",
)
@limiter.limit(BOOKING)
async def cancel_game(
    request: Request,
    game_id: str,
    current_user: CurrentUser,
    services: ServicesDep,
    body: CancelRequest | None = None,
) -> Game:
    reason = (body or CancelRequest()).reason
    return await services.booking.cancel_game(game_id, current_user, reason)
