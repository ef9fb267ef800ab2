"""Main FastAPI application for Court Games."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app import db as db_mod
from app.config import APP_VERSION, WORKERS_ENABLED
from app.errors import BookingError, BookingSystemError
from app.models import ErrorResponse
from app.rate_limit import limiter
from app.routers import admin, courts, games, health, notifications
from app.services.clock import Clock
from app.services.container import build_services
from app.services.email import DeliveryChannel

logger = logging.getLogger(__name__)


# ── Error handlers ────────────────────────────────────────────────────────


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if isinstance(exc, BookingSystemError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.warning(
            "%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message
        )
    body = ErrorResponse(error=exc.code, message=exc.message, details=exc.details or None)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s %s", request.method, request.url.path)
    body = ErrorResponse(error="rate_limited", message=f"Rate limit exceeded: {exc.detail}")
    return JSONResponse(status_code=429, content=body.model_dump(mode="json"))


# ── App factory ───────────────────────────────────────────────────────────


def create_app(
    *,
    db_path: str | None = None,
    clock: Clock | None = None,
    delivery: DeliveryChannel | None = None,
    workers_enabled: bool | None = None,
) -> FastAPI:
    """
    Build the application.

    Arguments left as ``None`` fall back to configuration; tests pass a
    temporary database, a frozen clock and a recording delivery channel.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services = await build_services(
            db_path or db_mod.DB_PATH, clock=clock, delivery=delivery
        )
        app.state.services = services
        run_workers = WORKERS_ENABLED if workers_enabled is None else workers_enabled
        if run_workers:
            await services.start_workers()
        try:
            yield
        finally:
            await services.close()

    app = FastAPI(
        title="Court Games API",
        description="Book sports courts for group games and manage their rosters",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(BookingError, booking_error_handler)

    app.include_router(health.router)
    app.include_router(courts.router)
    app.include_router(games.router)
    app.include_router(notifications.router)
    app.include_router(admin.router)
    return app


app = create_app()
