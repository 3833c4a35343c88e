"""
Interval scheduling on the running asyncio loop
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

from support_intel.utils.logger import get_logger

logger = get_logger(__name__)


class IntervalJob:
    """
    Runs a coroutine function every `interval_seconds`.

    stop() only cancels the wait between runs; a run already in progress
    finishes. Exceptions from a run are logged and the schedule continues.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        run_immediately: bool = True,
        initial_delay_seconds: Optional[float] = None
    ):
        self.name = name
        self.func = func
        self.interval = interval_seconds
        self.run_immediately = run_immediately
        self.initial_delay = initial_delay_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.run_count = 0

    @property
    def is_running(self) -> bool:
        return (
            self._task is not None
            and not self._task.done()
            and self._stop_event is not None
            and not self._stop_event.is_set()
        )

    def start(self) -> None:
        """Schedule the job on the running loop (no-op if already running)"""
        if self.is_running:
            logger.warning(f"Job {self.name} already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(self._stop_event), name=self.name)
        logger.info(f"Started job {self.name} (every {self.interval}s)")

    def stop(self) -> None:
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()
            logger.info(f"Stopped job {self.name}")

    async def wait_stopped(self) -> None:
        """Wait until the loop has exited (after stop())"""
        if self._task is not None:
            await self._task

    async def _run_once(self) -> None:
        self.run_count += 1
        try:
            await self.func()
        except Exception:
            logger.exception(f"Job {self.name} run {self.run_count} failed")

    async def _wait(self, stop_event: asyncio.Event, seconds: float) -> bool:
        """Sleep up to `seconds`; True if stop() was called meanwhile"""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run(self, stop_event: asyncio.Event) -> None:
        if self.initial_delay is not None:
            if await self._wait(stop_event, self.initial_delay):
                return
            await self._run_once()
        elif self.run_immediately:
            await self._run_once()

        while not await self._wait(stop_event, self.interval):
            await self._run_once()
