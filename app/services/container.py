"""
Explicit wiring of the booking engine.

``build_services`` opens the database and constructs every component
with its collaborators injected; the FastAPI lifespan stores the result
on ``app.state.services``.  Tests call it directly with a frozen clock
and a recording delivery channel.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.config import DB_TIMEOUT, DISPATCH_INTERVAL, SWEEP_INTERVAL
from app.db import Database
from app.services.availability import AvailabilityModel
from app.services.booking import BookingOrchestrator
from app.services.clock import Clock, SystemClock
from app.services.courts import CourtRepository
from app.services.email import DeliveryChannel, EmailDelivery
from app.services.games import GameRepository
from app.services.lifecycle import GameLifecycle
from app.services.roster import RosterManager
from app.services.scheduler import NotificationScheduler
from app.services.workers import LifecycleSweeper, ReminderDispatcher


@dataclass
class Services:
    db: Database
    clock: Clock
    courts: CourtRepository
    games: GameRepository
    availability: AvailabilityModel
    lifecycle: GameLifecycle
    roster: RosterManager
    scheduler: NotificationScheduler
    booking: BookingOrchestrator
    sweeper: LifecycleSweeper
    dispatcher: ReminderDispatcher

    async def start_workers(self) -> None:
        await self.sweeper.start()
        await self.dispatcher.start()

    async def close(self) -> None:
        await self.dispatcher.stop()
        await self.sweeper.stop()
        await self.db.close()


async def build_services(
    db_path: str,
    *,
    clock: Clock | None = None,
    delivery: DeliveryChannel | None = None,
    timeout: float = DB_TIMEOUT,
) -> Services:
    """Connect to ``db_path`` and wire all components around it."""
    clock = clock or SystemClock()
    db = Database(db_path, timeout=timeout)
    await db.connect()

    courts = CourtRepository(db, clock)
    availability = AvailabilityModel(db, clock)
    lifecycle = GameLifecycle(db, availability, clock)
    roster = RosterManager(db, clock)
    scheduler = NotificationScheduler(db, clock)
    booking = BookingOrchestrator(
        courts=courts,
        availability=availability,
        lifecycle=lifecycle,
        roster=roster,
        scheduler=scheduler,
        clock=clock,
    )
    return Services(
        db=db,
        clock=clock,
        courts=courts,
        games=GameRepository(db, courts, clock),
        availability=availability,
        lifecycle=lifecycle,
        roster=roster,
        scheduler=scheduler,
        booking=booking,
        sweeper=LifecycleSweeper(lifecycle, interval=SWEEP_INTERVAL),
        dispatcher=ReminderDispatcher(
            scheduler, delivery or EmailDelivery(), interval=DISPATCH_INTERVAL
        ),
    )
