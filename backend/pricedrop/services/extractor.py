"""
Product name and price extraction.

Pages are parsed with an ordered list of strategies per field, each a small
function ``(soup, url) -> str | None``; the first non-empty answer wins.
Marketplace markup drifts constantly, so nothing here raises: a page that
cannot be read yields ``price_text == "unknown"``.
"""

import json
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import structlog
from bs4 import BeautifulSoup
from bs4.element import Comment

from pricedrop.marketplaces import (
    MARKETPLACES,
    MarketplaceProfile,
    pick_marketplace,
    placeholder_names,
    requires_rendering,
    wait_selectors_for,
)
from pricedrop.services.page_source import PageSource
from pricedrop.services.pricing import price_digits_are_zero

logger = structlog.get_logger(__name__)

UNKNOWN_PRICE = "unknown"
MIN_NAME_LENGTH = 10

_CURRENCY_CODES = r"(?:EGP|USD|EUR|GBP|SAR|AED|LE|جنيه)"
_AMOUNT = r"\d[\d,]*(?:\.\d{1,2})?"
_PREFIXED_PRICE = re.compile(
    rf"(?:[$£€]|(?<![A-Za-z]){_CURRENCY_CODES}(?![A-Za-z]))\s?{_AMOUNT}"
)
_SUFFIXED_PRICE = re.compile(
    rf"(?<![\d,.]){_AMOUNT}\s?(?:[$£€]|(?<![A-Za-z]){_CURRENCY_CODES}(?![A-Za-z]))"
)
_INVISIBLE_TAGS = {"script", "style", "noscript", "template", "head", "title"}


@dataclass(frozen=True)
class ExtractedProduct:
    name: str
    price_text: str
    url: str
    source: str = "static"

    @classmethod
    def empty(cls, url: str, source: str) -> "ExtractedProduct":
        return cls(name=url, price_text=UNKNOWN_PRICE, url=url, source=source)

    @property
    def has_price(self) -> bool:
        return self.price_text != UNKNOWN_PRICE


@dataclass(frozen=True)
class Strategy:
    name: str
    run: Callable[[BeautifulSoup, str], str | None]


# -------------------------
# Helpers
# -------------------------


def _collapse(text: str | None) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def _select_value(soup: BeautifulSoup, selector: str) -> str | None:
    el = soup.select_one(selector)
    if el is None:
        return None
    value = el.get("content") or el.get_text(" ", strip=True)
    value = _collapse(value)
    return value or None


def _first_selector(soup: BeautifulSoup, selectors: Iterable[str]) -> str | None:
    for selector in selectors:
        value = _select_value(soup, selector)
        if value:
            return value
    return None


def _profiles_for(url: str) -> list[MarketplaceProfile]:
    """The URL's own marketplace first, then every other known one."""
    own = pick_marketplace(url)
    profiles = [own] if own else []
    profiles.extend(p for p in MARKETPLACES if p is not own)
    return profiles


def _find_first(node, key):
    """Depth-first search for the first ``key`` in nested dicts and lists."""
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            if key in current:
                return current[key]
            stack.extend(reversed(list(current.values())))
        elif isinstance(current, list):
            stack.extend(reversed(current))
    return None


def visible_text(soup: BeautifulSoup) -> str:
    chunks = []
    for string in soup.find_all(string=True):
        if isinstance(string, Comment):
            continue
        if string.parent is not None and string.parent.name in _INVISIBLE_TAGS:
            continue
        chunks.append(string)
    return _collapse(" ".join(chunks))


# -------------------------
# Name strategies
# -------------------------


def _platform_title(soup, url):
    for profile in _profiles_for(url):
        value = _first_selector(soup, profile.title_selectors)
        if value:
            return value
    return None


def _og_title(soup, url):
    return _first_selector(
        soup, ('meta[property="og:title"]', 'meta[name="og:title"]')
    )


def _heading(soup, url):
    for tag in ("h1", "h2"):
        el = soup.find(tag)
        if el is not None:
            value = _collapse(el.get_text(" ", strip=True))
            if value:
                return value
    return None


def _document_title(soup, url):
    if soup.title is None:
        return None
    return _collapse(soup.title.get_text()) or None


NAME_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("platform_title", _platform_title),
    Strategy("og_title", _og_title),
    Strategy("heading", _heading),
    Strategy("document_title", _document_title),
)


# -------------------------
# Price strategies
# -------------------------


def _platform_price(soup, url):
    for profile in _profiles_for(url):
        value = _first_selector(soup, profile.price_selectors)
        if value:
            return value
    return None


def _meta_price(soup, url):
    return _first_selector(
        soup, ('meta[property="product:price:amount"]', "[itemprop=price]")
    )


def _json_ld_price(soup, url):
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or "price" not in raw:
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            continue

        offers = _find_first(data, "offers")
        price = _find_first(offers, "price") if offers is not None else None
        if price is None:
            price = _find_first(offers, "lowPrice") if offers is not None else None
        if price in (None, ""):
            continue

        currency = _find_first(offers, "priceCurrency") or ""
        return _collapse(f"{currency} {price}")
    return None


def _generic_price(soup, url):
    el = soup.select_one("[data-price]")
    if el is not None:
        value = _collapse(el.get("content") or el.get_text(" ", strip=True) or el.get("data-price"))
        if value:
            return value
    return _select_value(soup, ".price")


def _text_scan_price(soup, url):
    text = visible_text(soup)
    match = _PREFIXED_PRICE.search(text) or _SUFFIXED_PRICE.search(text)
    return match.group(0).strip() if match else None


PRICE_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("platform_price", _platform_price),
    Strategy("meta_price", _meta_price),
    Strategy("json_ld_price", _json_ld_price),
    Strategy("generic_price", _generic_price),
    Strategy("text_scan", _text_scan_price),
)


def run_strategies(strategies: Iterable[Strategy], soup: BeautifulSoup, url: str) -> tuple[str | None, str | None]:
    """Return ``(value, strategy_name)`` for the first strategy with an answer."""
    for strategy in strategies:
        try:
            value = strategy.run(soup, url)
        except Exception as exc:
            logger.warning("extractor.strategy_failed", strategy=strategy.name, url=url, error=str(exc))
            continue
        if value:
            return value, strategy.name
    return None, None


def extract_from_html(html: str, url: str, source: str = "static") -> ExtractedProduct:
    soup = BeautifulSoup(html or "", "html.parser")

    name, name_strategy = run_strategies(NAME_STRATEGIES, soup, url)
    price, price_strategy = run_strategies(PRICE_STRATEGIES, soup, url)

    logger.debug(
        "extractor.parsed",
        url=url,
        source=source,
        name_strategy=name_strategy,
        price_strategy=price_strategy,
    )

    return ExtractedProduct(
        name=name or url,
        price_text=price or UNKNOWN_PRICE,
        url=url,
        source=source,
    )


def is_weak_result(product: ExtractedProduct, placeholders: frozenset[str] | None = None) -> bool:
    """True when a result is too thin to trust and rendering should be tried."""
    name = product.name.strip()
    if not name or name == product.url:
        return True
    if len(name) < MIN_NAME_LENGTH:
        return True
    if name.lower() in (placeholders if placeholders is not None else placeholder_names()):
        return True
    if product.price_text == UNKNOWN_PRICE:
        return True
    return price_digits_are_zero(product.price_text)


class PriceExtractor:
    def __init__(self, page_source: PageSource, render_only_domains: list[str] | None = None):
        self.page_source = page_source
        self.render_only_domains = render_only_domains

    async def extract(self, url: str) -> ExtractedProduct:
        try:
            return await self._extract(url)
        except Exception:
            # never let one broken page stop the caller
            logger.exception("extractor.unexpected_error", url=url)
            return ExtractedProduct.empty(url, source="none")

    async def _extract(self, url: str) -> ExtractedProduct:
        static_result = None

        if requires_rendering(url, self.render_only_domains):
            logger.info("extractor.render_only_domain", url=url)
        else:
            page = await self.page_source.fetch_static(url)
            if page.ok:
                static_result = extract_from_html(page.html, url, source="static")
            else:
                logger.info("extractor.static_failed", url=url, kind=page.kind.value, detail=page.detail)
                static_result = ExtractedProduct.empty(url, source="static")

            if not is_weak_result(static_result):
                return static_result

            logger.info(
                "extractor.escalate",
                url=url,
                name=static_result.name,
                price_text=static_result.price_text,
            )

        page = await self.page_source.render_dynamic(url, wait_selectors_for(url))
        if not page.ok:
            logger.warning("extractor.render_failed", url=url, kind=page.kind.value, detail=page.detail)
            # nothing better to offer than whatever the static page gave
            return static_result or ExtractedProduct.empty(url, source="rendered")

        rendered = extract_from_html(page.html, url, source="rendered")
        if is_weak_result(rendered):
            logger.info(
                "extractor.weak_result",
                url=url,
                name=rendered.name,
                price_text=rendered.price_text,
            )
        return rendered
