import asyncio
import random
from dataclasses import dataclass
from enum import Enum

import httpx
import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from pricedrop.core.config import settings
from pricedrop.marketplaces import get_proxy
from pricedrop.services.canonicalize import is_valid_url

logger = structlog.get_logger(__name__)


class FetchFailureKind(str, Enum):
    INVALID_URL = "invalid_url"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    NETWORK = "network"
    RENDER_FAILED = "render_failed"
    RENDERER_UNAVAILABLE = "renderer_unavailable"


@dataclass(frozen=True)
class PageFetched:
    url: str
    html: str
    status_code: int = 200
    rendered: bool = False

    ok = True


@dataclass(frozen=True)
class PageFetchFailed:
    url: str
    kind: FetchFailureKind
    detail: str = ""

    ok = False


PageResult = PageFetched | PageFetchFailed


class PageSource:
    """
    Gets HTML for a product page, either with a plain HTTP request or by
    rendering it in headless Chromium.

    Both methods return a ``PageResult`` and never raise for network,
    status or browser problems.
    """

    def __init__(
        self,
        user_agent: str | None = None,
        fetch_timeout: float | None = None,
        render_timeout_ms: int | None = None,
        render_delay: tuple[float, float] | None = None,
        proxy: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep=asyncio.sleep,
    ):
        self.user_agent = user_agent or settings.USER_AGENT
        self.fetch_timeout = fetch_timeout or settings.FETCH_TIMEOUT_SECONDS
        self.render_timeout_ms = render_timeout_ms or settings.RENDER_TIMEOUT_MS
        self.render_delay = render_delay or (
            settings.RENDER_DELAY_MIN_SECONDS,
            settings.RENDER_DELAY_MAX_SECONDS,
        )
        self.proxy = proxy if proxy is not None else get_proxy()
        self._transport = transport
        self._sleep = sleep

        self._playwright = None
        self._browser = None
        self._browser_lock = asyncio.Lock()

    # -------------------------
    # Static fetch
    # -------------------------

    def build_headers(self) -> dict:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Connection": "keep-alive",
        }

    async def fetch_static(self, url: str) -> PageResult:
        if not is_valid_url(url):
            return PageFetchFailed(url, FetchFailureKind.INVALID_URL, "not an http(s) URL")

        client_kwargs = {
            "headers": self.build_headers(),
            "timeout": self.fetch_timeout,
            "follow_redirects": True,
        }
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        elif self.proxy:
            client_kwargs["proxy"] = self.proxy

        try:
            async with httpx.AsyncClient(**client_kwargs) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            logger.warning("page.fetch.timeout", url=url, error=str(exc))
            return PageFetchFailed(url, FetchFailureKind.TIMEOUT, str(exc))
        except httpx.HTTPError as exc:
            logger.warning("page.fetch.network_error", url=url, error=str(exc))
            return PageFetchFailed(url, FetchFailureKind.NETWORK, str(exc))

        if not response.is_success:
            logger.warning("page.fetch.bad_status", url=url, status=response.status_code)
            return PageFetchFailed(
                url, FetchFailureKind.HTTP_STATUS, f"HTTP {response.status_code}"
            )

        return PageFetched(url=url, html=response.text, status_code=response.status_code)

    # -------------------------
    # Rendering fallback
    # -------------------------

    async def _ensure_browser(self):
        async with self._browser_lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                launch_kwargs = {"headless": True}
                if self.proxy:
                    launch_kwargs["proxy"] = {"server": self.proxy}
                self._browser = await self._playwright.chromium.launch(**launch_kwargs)
            return self._browser

    async def render_dynamic(self, url: str, wait_selectors=()) -> PageResult:
        if not is_valid_url(url):
            return PageFetchFailed(url, FetchFailureKind.INVALID_URL, "not an http(s) URL")

        try:
            browser = await self._ensure_browser()
        except PlaywrightError as exc:
            logger.warning("page.render.browser_unavailable", url=url, error=str(exc))
            return PageFetchFailed(url, FetchFailureKind.RENDERER_UNAVAILABLE, str(exc))

        # one deadline for the whole render, not per browser step
        budget = self.render_timeout_ms / 1000
        try:
            return await asyncio.wait_for(
                self._render_page(browser, url, wait_selectors), timeout=budget
            )
        except asyncio.TimeoutError:
            logger.warning("page.render.deadline_exceeded", url=url, budget_s=budget)
            return PageFetchFailed(
                url, FetchFailureKind.TIMEOUT, f"render exceeded {budget:g}s"
            )

    async def _render_page(self, browser, url: str, wait_selectors) -> PageResult:
        context = None
        try:
            context = await browser.new_context(
                user_agent=self.user_agent,
                locale="en-US",
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            page = await context.new_page()
            await page.goto(url, timeout=self.render_timeout_ms, wait_until="domcontentloaded")

            try:
                await page.wait_for_load_state("networkidle", timeout=self.render_timeout_ms)
            except PlaywrightTimeoutError:
                # long-polling pages never go idle, read what is there
                logger.debug("page.render.networkidle_timeout", url=url)

            for selector in wait_selectors:
                try:
                    await page.wait_for_selector(selector, timeout=3000)
                    break
                except PlaywrightTimeoutError:
                    continue

            await self._sleep(random.uniform(*self.render_delay))

            html = await page.content()
            return PageFetched(url=url, html=html, rendered=True)
        except PlaywrightTimeoutError as exc:
            logger.warning("page.render.timeout", url=url, error=str(exc))
            return PageFetchFailed(url, FetchFailureKind.TIMEOUT, str(exc))
        except PlaywrightError as exc:
            logger.warning("page.render.failed", url=url, error=str(exc))
            return PageFetchFailed(url, FetchFailureKind.RENDER_FAILED, str(exc))
        finally:
            if context is not None:
                try:
                    await context.close()
                except PlaywrightError:
                    pass

    async def aclose(self) -> None:
        async with self._browser_lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
