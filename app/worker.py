"""
Standalone worker process.

Runs the lifecycle sweeper and the reminder dispatcher against the
configured database without serving HTTP.  Pair it with API processes
started with WORKERS_ENABLED=false:

    court-games-worker          # installed console script
    python -m app.worker
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal

from app.config import DB_PATH
from app.services.clock import Clock
from app.services.container import build_services
from app.services.email import DeliveryChannel

logger = logging.getLogger(__name__)


async def run_workers(
    db_path: str | None = None,
    *,
    clock: Clock | None = None,
    delivery: DeliveryChannel | None = None,
    stop: asyncio.Event | None = None,
) -> None:
    """Start both workers and keep them running until ``stop`` is set."""
    path = db_path or DB_PATH
    stop = stop or asyncio.Event()
    services = await build_services(path, clock=clock, delivery=delivery)
    try:
        await services.start_workers()
        logger.info("Workers running against %s", path)
        await stop.wait()
    finally:
        await services.close()
        logger.info("Workers shut down")


async def _serve() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    await run_workers(stop=stop)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "info").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_serve())


if __name__ == "__main__":
    main()
