import asyncio
import random
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import timedelta
from itertools import islice

import structlog

from pricedrop.core.config import settings
from pricedrop.core.errors import MonitorBusyError
from pricedrop.db.base import get_session_factory
from pricedrop.db.models import Subscription
from pricedrop.db.types import utcnow
from pricedrop.services.comparator import PriceComparator, baseline_price
from pricedrop.services.extractor import PriceExtractor, is_weak_result
from pricedrop.services.notifier import build_notifier
from pricedrop.services.page_source import PageSource
from pricedrop.services.pricing import parse_price_to_decimal
from pricedrop.services.rate_limiter import DomainRateLimiter
from pricedrop.services.subscriptions import SubscriptionStore

logger = structlog.get_logger(__name__)


@dataclass
class RunResult:
    checked: int = 0
    notified: int = 0
    failed: int = 0
    batches: int = 0

    def add(self, other: "RunResult") -> None:
        self.checked += other.checked
        self.notified += other.notified
        self.failed += other.failed

    def as_dict(self) -> dict:
        return {
            "checked": self.checked,
            "notified": self.notified,
            "failed": self.failed,
            "batches": self.batches,
        }


def batched(items: Iterable[Subscription], size: int) -> Iterator[list[Subscription]]:
    iterator = iter(items)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


class PriceMonitor:
    """
    Re-checks subscriptions whose cooldown elapsed and notifies on drops.

    Items are processed one at a time so the rate limiter bookkeeping stays
    exact; only one ``run_once`` may be in flight per monitor.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        extractor: PriceExtractor,
        comparator: PriceComparator,
        rate_limiter: DomainRateLimiter | None = None,
        batch_size: int | None = None,
        min_check_interval: timedelta | None = None,
        pacing: tuple[float, float] | None = None,
        sleep=asyncio.sleep,
        clock=utcnow,
    ):
        self.store = store
        self.extractor = extractor
        self.comparator = comparator
        self.rate_limiter = rate_limiter or DomainRateLimiter()
        self.batch_size = settings.BATCH_SIZE if batch_size is None else batch_size
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        self.min_check_interval = (
            timedelta(seconds=settings.MIN_CHECK_INTERVAL_SECONDS)
            if min_check_interval is None
            else min_check_interval
        )
        self.pacing = (
            (settings.PACING_MIN_SECONDS, settings.PACING_MAX_SECONDS) if pacing is None else pacing
        )
        self._sleep = sleep
        self._clock = clock
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def aclose(self) -> None:
        await self.extractor.page_source.aclose()

    async def _pause(self) -> None:
        low, high = self.pacing
        if high <= 0:
            return
        await self._sleep(random.uniform(low, high))

    async def run_once(self) -> RunResult:
        if self._run_lock.locked():
            raise MonitorBusyError("A price check run is already in progress")

        async with self._run_lock:
            return await self._run()

    async def _run(self) -> RunResult:
        now = self._clock()
        result = RunResult()

        logger.info(
            "monitor.run.start",
            batch_size=self.batch_size,
            min_check_interval_s=int(self.min_check_interval.total_seconds()),
        )

        eligible = self.store.find_eligible(now, self.min_check_interval)
        for batch in batched(eligible, self.batch_size):
            if result.batches:
                await self._pause()

            result.batches += 1
            logger.info("monitor.batch.start", batch=result.batches, size=len(batch))
            batch_result = await self.process_batch(batch)
            result.add(batch_result)

        if result.batches == 0:
            logger.info("monitor.run.nothing_due")

        logger.info("monitor.run.complete", **result.as_dict())
        return result

    async def process_batch(self, batch: list[Subscription]) -> RunResult:
        result = RunResult()
        for subscription in batch:
            try:
                notified = await self.check_one(subscription)
            except Exception as exc:
                # keep the batch alive
                result.failed += 1
                logger.error(
                    "monitor.item.failed",
                    subscription_id=subscription.id,
                    url=subscription.product_url,
                    error=str(exc),
                    exc_info=True,
                )
                continue

            result.checked += 1
            if notified:
                result.notified += 1
        return result

    async def check_one(self, subscription: Subscription) -> bool:
        """Check one subscription; True when a drop notification went out."""
        url = subscription.product_url

        await self.rate_limiter.await_turn_for_url(url)
        await self._pause()

        product = await self.extractor.extract(url)

        now = self._clock()
        subscription.last_checked_at = now
        if product.name and product.name != url and not is_weak_result(product):
            subscription.product_name = product.name

        current_price = parse_price_to_decimal(product.price_text) if product.has_price else None
        last_seen_price = baseline_price(subscription)

        if current_price is None or last_seen_price is None:
            if current_price is not None:
                # first usable observation becomes the baseline
                subscription.last_seen_price = current_price
            logger.info(
                "monitor.item.not_comparable",
                subscription_id=subscription.id,
                url=url,
                price_text=product.price_text,
                last_seen_price=str(last_seen_price) if last_seen_price is not None else None,
            )
            self.store.save(subscription)
            return False

        outcome = await self.comparator.apply(subscription, current_price, now)
        self.store.save(subscription)

        logger.info(
            "monitor.item.checked",
            subscription_id=subscription.id,
            url=url,
            old_price=str(last_seen_price),
            new_price=str(current_price),
            notified=outcome.notified,
        )
        return outcome.notified


def build_monitor(session_factory=None) -> PriceMonitor:
    """Wire a monitor from settings, the way the app and the job both run it."""

    store = SubscriptionStore(session_factory or get_session_factory())
    extractor = PriceExtractor(PageSource())
    comparator = PriceComparator(build_notifier())
    return PriceMonitor(store=store, extractor=extractor, comparator=comparator)
