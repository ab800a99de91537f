import asyncio
import time

import structlog

from pricedrop.core.config import settings
from pricedrop.services.canonicalize import domain_for

logger = structlog.get_logger(__name__)


class DomainRateLimiter:
    """
    Keeps at least ``min_delay`` seconds between two requests to the same host.

    Hosts are independent of each other. The state lives on the instance, so
    every run that shares a limiter also shares its spacing. In-process only.
    """

    def __init__(
        self,
        min_delay: float | None = None,
        clock=time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.min_delay = settings.DOMAIN_DELAY_SECONDS if min_delay is None else min_delay
        self._clock = clock
        self._sleep = sleep
        self._last_request: dict[str, float] = {}

    async def await_turn(self, hostname: str) -> float:
        """Wait until ``hostname`` may be hit again; returns the seconds waited."""
        waited = 0.0
        last = self._last_request.get(hostname)
        if last is not None:
            elapsed = self._clock() - last
            if elapsed < self.min_delay:
                waited = self.min_delay - elapsed
                logger.debug("limiter.wait", host=hostname, seconds=round(waited, 3))
                await self._sleep(waited)

        self._last_request[hostname] = self._clock()
        return waited

    async def await_turn_for_url(self, url: str) -> float:
        return await self.await_turn(domain_for(url))

    def last_request_at(self, hostname: str) -> float | None:
        return self._last_request.get(hostname)

    def reset(self) -> None:
        self._last_request.clear()
