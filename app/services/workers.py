"""
Background workers driving the time-based parts of the engine.

``LifecycleSweeper``   — runs ``GameLifecycle.sweep`` every tick so games
                         move to in_progress / completed on schedule.
``ReminderDispatcher`` — pulls due notifications, hands each to the
                         delivery channel and marks it delivered.

Both are idempotent per tick; several processes may run them at once.
"""

from __future__ import annotations

import logging

from app.config import DISPATCH_INTERVAL, SWEEP_INTERVAL
from app.models import SweepReport
from app.services.background import BackgroundWorker
from app.services.email import DeliveryChannel
from app.services.lifecycle import GameLifecycle
from app.services.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


class LifecycleSweeper(BackgroundWorker):
    def __init__(self, lifecycle: GameLifecycle, *, interval: float = SWEEP_INTERVAL) -> None:
        super().__init__(interval=interval, name="LifecycleSweeper")
        self._lifecycle = lifecycle

    async def _on_start(self) -> None:
        # Catch up on anything that became due while the service was down.
        try:
            await self._tick()
        except Exception:
            logger.exception("Initial sweep failed, retrying on the next tick")

    async def _tick(self) -> SweepReport:
        return await self._lifecycle.sweep()


class ReminderDispatcher(BackgroundWorker):
    def __init__(
        self,
        scheduler: NotificationScheduler,
        delivery: DeliveryChannel,
        *,
        interval: float = DISPATCH_INTERVAL,
    ) -> None:
        super().__init__(interval=interval, name="ReminderDispatcher")
        self._scheduler = scheduler
        self._delivery = delivery

    async def _tick(self) -> int:
        return await self.dispatch_once()

    async def dispatch_once(self) -> int:
        """
        Deliver every currently due notification once.

        Each record is claimed with ``mark_delivered`` before it is sent,
        so concurrent dispatchers never send the same one twice.  When
        delivery raises, the claim is dropped and the record is retried
        next tick (until its window expires); the rest of the batch
        still goes out.

        Returns the number of notifications delivered.
        """
        delivered = 0
        async for notification in self._scheduler.due_notifications():
            if not await self._scheduler.mark_delivered(notification.id):
                continue
            try:
                await self._delivery.deliver(notification)
            except Exception:
                logger.exception(
                    "Delivery of %s %s to %s failed, will retry",
                    notification.kind.value, notification.id, notification.recipient,
                )
                await self._scheduler.unmark_delivered(notification.id)
                continue
            delivered += 1

        if delivered:
            logger.info("Delivered %d notification(s)", delivered)
        return delivered
