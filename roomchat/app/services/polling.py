import asyncio
from typing import Awaitable, Callable, Optional

from ..core.logger import get_logger

log = get_logger("services.polling")

SleepFn = Callable[[float], Awaitable[None]]


class PollingTask:
    """
    Runs ``callback`` immediately and then every ``interval`` seconds until
    cancelled. A failing iteration is logged and polling continues.

    ``tick()`` runs a single iteration without touching the schedule, and
    ``sleep`` can be swapped out so tests do not depend on wall-clock time.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        interval: float,
        *,
        name: str = "poll",
        sleep: SleepFn = asyncio.sleep,
    ):
        if interval <= 0:
            raise ValueError("polling interval must be positive")
        self._callback = callback
        self._interval = interval
        self._name = name
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.iterations = 0
        self.failures = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> None:
        self.iterations += 1
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            log.warning(f"[{self._name}] iteration {self.iterations} failed: {e}")

    async def _run(self) -> None:
        try:
            while True:
                await self.tick()
                await self._sleep(self._interval)
        except asyncio.CancelledError:
            log.debug(f"[{self._name}] cancelled after {self.iterations} iterations")
            raise

    def start(self) -> "PollingTask":
        if self.running:
            log.warning(f"[{self._name}] already running, skipping")
            return self
        log.info(f"[{self._name}] polling every {self._interval * 1000:.0f}ms")
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)
        return self

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        self._task = None
