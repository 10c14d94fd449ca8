import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs an async job every `interval_seconds` until stopped.

    The owner (the app lifespan) holds the handle; a failing run is logged and
    the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        job: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        run_on_start: bool = False,
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._job = job
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        try:
            return await self._job()
        except Exception as e:
            logger.exception("Periodic task %s failed: %s", self.name, e)
            return None

    async def _loop(self) -> None:
        if self.run_on_start:
            await self.run_once()
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("Periodic task %s started (every %ss)", self.name, self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Periodic task %s stopped", self.name)
