"""
Admin-only operational endpoints.
"""

from fastapi import APIRouter, Request

from app.dependencies import AdminUser, ServicesDep
from app.models import SweepReport
from app.rate_limit import STRICT, limiter

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post(
    "/sweep",
    response_model=SweepReport,
    operation_id="runLifecycleSweep",
    summary="Run one lifecycle sweep now",
)
@limiter.limit(STRICT)
async def run_sweep(request: Request, admin: AdminUser, services: ServicesDep) -> SweepReport:
    return await services.lifecycle.sweep()
