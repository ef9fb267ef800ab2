"""
Health check endpoint.
"""

from fastapi import APIRouter

from app.config import APP_VERSION
from app.dependencies import ServicesDep
from app.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health(services: ServicesDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        timestamp=services.clock.now(),
    )
