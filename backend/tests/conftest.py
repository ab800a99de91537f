from __future__ import annotations

import pytest

from pricedrop.db.base import create_tables, make_engine, make_session_factory
from pricedrop.db.types import utcnow
from pricedrop.services.comparator import PriceComparator
from pricedrop.services.extractor import ExtractedProduct, PriceExtractor
from pricedrop.services.monitor import PriceMonitor
from pricedrop.services.notifier import Notifier, PriceDropNotice
from pricedrop.services.page_source import FetchFailureKind, PageFetched, PageFetchFailed
from pricedrop.services.rate_limiter import DomainRateLimiter
from pricedrop.services.subscriptions import SubscriptionStore


def product_page(name: str, price: str) -> str:
    return f"""
    <html>
      <head><title>{name} | Example Shop</title></head>
      <body>
        <h1>{name}</h1>
        <span class="price">{price}</span>
      </body>
    </html>
    """


class FakeClock:
    """Monotonic clock whose sleep just moves time forward."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePageSource:
    def __init__(self, static: dict[str, str] | None = None, rendered: dict[str, str] | None = None) -> None:
        self.static = static or {}
        self.rendered = rendered or {}
        self.static_calls: list[str] = []
        self.render_calls: list[str] = []
        self.closed = False

    async def fetch_static(self, url: str):
        self.static_calls.append(url)
        if url in self.static:
            return PageFetched(url=url, html=self.static[url])
        return PageFetchFailed(url, FetchFailureKind.HTTP_STATUS, "HTTP 404")

    async def render_dynamic(self, url: str, wait_selectors=()):
        self.render_calls.append(url)
        if url in self.rendered:
            return PageFetched(url=url, html=self.rendered[url], rendered=True)
        return PageFetchFailed(url, FetchFailureKind.RENDER_FAILED, "browser crashed")

    async def aclose(self) -> None:
        self.closed = True


class StubExtractor:
    """Returns canned results per URL, or raises when told to."""

    def __init__(self, prices: dict[str, str], page_source: FakePageSource | None = None) -> None:
        self.prices = prices
        self.page_source = page_source or FakePageSource()
        self.calls: list[str] = []

    async def extract(self, url: str) -> ExtractedProduct:
        self.calls.append(url)
        price = self.prices.get(url, "unknown")
        if isinstance(price, Exception):
            raise price
        return ExtractedProduct(name="Wireless Noise Cancelling Headphones", price_text=price, url=url)


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[PriceDropNotice] = []

    async def send(self, notice: PriceDropNotice) -> str:
        self.sent.append(notice)
        return f"ref-{len(self.sent)}"


class FailingNotifier(Notifier):
    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, notice: PriceDropNotice) -> str:
        self.attempts += 1
        raise ConnectionRefusedError("smtp down")


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    create_tables(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> SubscriptionStore:
    return SubscriptionStore(session_factory, page_size=3)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_monitor(store, notifier):
    def _make(
        prices: dict,
        batch_size: int = 20,
        notifier_override: Notifier | None = None,
        rate_limiter: DomainRateLimiter | None = None,
        sleep=no_sleep,
        clock=utcnow,
    ) -> PriceMonitor:
        if rate_limiter is None:
            limiter_clock = FakeClock()
            rate_limiter = DomainRateLimiter(min_delay=2.0, clock=limiter_clock, sleep=limiter_clock.sleep)
        return PriceMonitor(
            store=store,
            extractor=StubExtractor(prices),
            comparator=PriceComparator(notifier_override or notifier),
            rate_limiter=rate_limiter,
            batch_size=batch_size,
            pacing=(0.8, 2.8),
            sleep=sleep,
            clock=clock,
        )

    return _make


@pytest.fixture
def real_extractor_factory():
    def _make(static=None, rendered=None, render_only_domains=None):
        source = FakePageSource(static=static, rendered=rendered)
        return PriceExtractor(source, render_only_domains=render_only_domains or []), source

    return _make
