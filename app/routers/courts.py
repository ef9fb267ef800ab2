"""
Court endpoints: registry (admin create, list, nearby) and availability.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status

from app.constants import DEFAULT_NEARBY_RADIUS_M
from app.dependencies import AdminUser, PaginationParams, ServicesDep, paginate
from app.models import (
    AvailabilityResponse,
    BookedRange,
    Court,
    CourtCreate,
    CourtListResponse,
)
from app.rate_limit import STRICT, limiter

router = APIRouter(prefix="/api/courts", tags=["courts"])


@router.post(
    "",
    response_model=Court,
    status_code=status.HTTP_201_CREATED,
    operation_id="createCourt",
    summary="Register a new court (admin only)",
)
@limiter.limit(STRICT)
async def create_court(
    request: Request,
    body: CourtCreate,
    admin: AdminUser,
    services: ServicesDep,
) -> Court:
    return await services.courts.create(body, created_by=admin.email)


@router.get(
    "",
    response_model=CourtListResponse,
    operation_id="listCourts",
    summary="List active courts, optionally near a point",
)
async def list_courts(
    services: ServicesDep,
    pagination: PaginationParams = Depends(PaginationParams),
    sport_type: str | None = Query(None, description="Only courts supporting this sport"),
    lat: float | None = Query(None, ge=-90, le=90, description="Latitude for nearby search"),
    lng: float | None = Query(None, ge=-180, le=180, description="Longitude for nearby search"),
    radius_m: float = Query(DEFAULT_NEARBY_RADIUS_M, gt=0, le=100_000, description="Search radius in metres"),
) -> CourtListResponse:
    if lat is not None and lng is not None:
        nearby = await services.courts.nearby(lat, lng, radius_m, sport_type=sport_type)
        page = nearby[pagination.offset : pagination.offset + pagination.page_size]
        return paginate(page, len(nearby), pagination, CourtListResponse)

    courts, total = await services.courts.list_courts(
        sport_type=sport_type, limit=pagination.page_size, offset=pagination.offset
    )
    return paginate(courts, total, pagination, CourtListResponse)


@router.get(
    "/{court_id}",
    response_model=Court,
    operation_id="getCourt",
    summary="Get details of a specific court",
)
async def get_court(court_id: str, services: ServicesDep) -> Court:
    return await services.courts.get(court_id)


@router.get(
    "/{court_id}/availability",
    response_model=AvailabilityResponse,
    operation_id="getCourtAvailability",
    summary="Booked time ranges of a court on one date",
)
async def get_court_availability(
    court_id: str,
    services: ServicesDep,
    availability_date: date = Query(..., alias="date", description="Calendar date (UTC)"),
) -> AvailabilityResponse:
    court = await services.courts.get(court_id)
    slots = await services.availability.booked_slots(court.id, availability_date)
    return AvailabilityResponse(
        court_id=court.id,
        availability_date=availability_date,
        booked=[
            BookedRange(start_time=s.start_time, end_time=s.end_time, game_id=s.game_id)
            for s in slots
        ],
    )
