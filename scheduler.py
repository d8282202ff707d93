"""Periodic execution of service routines."""

import asyncio
import logging
from typing import List

from constants import MAXIMUM_INTERVAL_SECONDS
from errors import InvalidArgumentError
from models import ServiceRoutine

logger = logging.getLogger(__name__)


class RoutineScheduler:
    """
    Runs each routine in its own task. The interval is measured from the end
    of one execution to the start of the next; failures are logged and do not
    stop the routine.
    """

    def __init__(self):
        self._tasks: List[asyncio.Task] = []
        self._stopping = asyncio.Event()

    def schedule(self, routine: ServiceRoutine) -> asyncio.Task:
        """Start executing `routine`. Out-of-bounds intervals are refused."""
        interval = routine.interval_seconds
        if isinstance(interval, bool) or not 0 < interval <= MAXIMUM_INTERVAL_SECONDS:
            raise InvalidArgumentError(
                f"Routine with out-of-bounds interval specified ({routine.description}): {interval}"
            )

        task = asyncio.create_task(self._run(routine), name=f"routine:{routine.description}")
        self._tasks.append(task)
        logger.debug(f"Scheduled routine '{routine.description}' every {interval}s")
        return task

    async def _execute(self, routine: ServiceRoutine):
        try:
            await routine.callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Exception when running routine '{routine.description}': {e}", exc_info=True)

    async def _run(self, routine: ServiceRoutine):
        if routine.run_immediately:
            await self._execute(routine)

        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=routine.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass
            await self._execute(routine)

    async def stop(self):
        """Stop all routines, including ones that are currently executing."""
        self._stopping.set()
        tasks, self._tasks = self._tasks, []
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
