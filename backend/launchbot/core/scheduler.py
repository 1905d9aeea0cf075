"""Periodic background jobs run on the application's event loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Job = Callable[[], "Awaitable[object] | object"]


async def run_periodically(name: str, interval_seconds: float, job: Job) -> None:
    """Run ``job`` forever, sleeping ``interval_seconds`` between runs.

    A failing run is logged and the loop keeps going. Cancellation stops it.
    """
    logger.info("Periodic job %s started (interval=%ss)", name, interval_seconds)
    while True:
        try:
            result = job()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            logger.info("Periodic job %s cancelled", name)
            raise
        except Exception:
            logger.exception("Periodic job %s failed", name)

        await asyncio.sleep(interval_seconds)


def start_periodic(name: str, interval_seconds: float, job: Job) -> asyncio.Task[None]:
    return asyncio.create_task(run_periodically(name, interval_seconds, job), name=name)


async def stop_tasks(tasks: list[asyncio.Task[None]]) -> None:
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
