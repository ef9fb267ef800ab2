"""Periodic asyncio loop shared by the sweeper and the dispatcher."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundWorker:
    """
    Runs ``_tick`` every ``interval`` seconds on the event loop.

    A failing tick is logged and the loop carries on; the next tick
    re-reads durable state, so nothing is lost.  ``run_once`` runs a
    single tick in the caller's task.
    """

    def __init__(self, *, interval: float, name: str) -> None:
        self._interval = interval
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        await self._on_start()
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started (every %ss)", self._name, self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("%s stopped", self._name)

    async def run_once(self) -> Any:
        return await self._tick()

    async def _on_start(self) -> None:
        pass

    async def _tick(self) -> Any:
        raise NotImplementedError

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._tick()
            except Exception:
                logger.exception("%s tick failed, retrying in %ss", self._name, self._interval)
