import asyncio
import time

import structlog

from pricedrop.core.config import settings
from pricedrop.core.errors import MonitorBusyError
from pricedrop.services.monitor import PriceMonitor, RunResult

logger = structlog.get_logger(__name__)


class PeriodicTrigger:
    """
    Runs ``monitor.run_once`` right away and then every ``interval_seconds``,
    measured from the start of one run to the start of the next.

    Lives on the running event loop as a background task, so API requests
    keep being served while a run waits on the network or the rate limiter.
    """

    def __init__(
        self,
        monitor: PriceMonitor,
        interval_seconds: float | None = None,
        clock=time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.monitor = monitor
        self.interval_seconds = (
            settings.NOTIFIER_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.runs = 0
        self.last_result: RunResult | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the loop; returns False when it was already running."""
        if self.is_running:
            logger.info("periodic.already_running")
            return False

        logger.info("periodic.start", interval_s=self.interval_seconds)
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name="price-drop-periodic-checks"
        )
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("periodic.stopped")

    async def trigger_now(self) -> RunResult:
        """Out-of-band run, e.g. from the admin endpoint. May raise MonitorBusyError."""
        return await self.monitor.run_once()

    async def _tick(self) -> None:
        try:
            self.last_result = await self.monitor.run_once()
        except MonitorBusyError:
            logger.info("periodic.skipped_busy")
        except Exception:
            # the next tick retries
            logger.exception("periodic.run_failed")
        finally:
            self.runs += 1

    async def _loop(self) -> None:
        while True:
            started = self._clock()
            await self._tick()
            elapsed = self._clock() - started
            if elapsed > self.interval_seconds:
                logger.warning("periodic.run_overran", elapsed_s=round(elapsed, 1))
            await self._sleep(max(0.0, self.interval_seconds - elapsed))
