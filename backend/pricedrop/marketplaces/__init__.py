from pricedrop.core.config import settings
from pricedrop.marketplaces.amazon import AMAZON
from pricedrop.marketplaces.base import MarketplaceProfile, get_proxy
from pricedrop.marketplaces.ebay import EBAY
from pricedrop.marketplaces.noon import NOON
from pricedrop.services.canonicalize import domain_for

MARKETPLACES: tuple[MarketplaceProfile, ...] = (AMAZON, EBAY, NOON)

GENERIC_PLACEHOLDER_NAMES = frozenset(
    {
        "shop",
        "store",
        "home",
        "home page",
        "homepage",
        "online shopping",
        "product",
        "products",
        "page not found",
        "access denied",
        "robot check",
        "just a moment...",
    }
)


def pick_marketplace(url: str) -> MarketplaceProfile | None:
    for profile in MARKETPLACES:
        if profile.can_handle(url):
            return profile
    return None


def requires_rendering(url: str, extra_domains: list[str] | None = None) -> bool:
    profile = pick_marketplace(url)
    if profile is not None and profile.requires_rendering:
        return True

    host = domain_for(url)
    domains = settings.RENDER_ONLY_DOMAINS if extra_domains is None else extra_domains
    return any(domain in host for domain in domains)


def placeholder_names() -> frozenset[str]:
    names = set(GENERIC_PLACEHOLDER_NAMES)
    for profile in MARKETPLACES:
        names.update(profile.placeholder_names)
        names.add(profile.name)
    return frozenset(names)


def wait_selectors_for(url: str) -> tuple[str, ...]:
    profile = pick_marketplace(url)
    if profile is not None:
        return profile.wait_selectors
    return ('meta[property="product:price:amount"]', "[itemprop=price]", ".price")


__all__ = [
    "AMAZON",
    "EBAY",
    "NOON",
    "MARKETPLACES",
    "MarketplaceProfile",
    "get_proxy",
    "pick_marketplace",
    "placeholder_names",
    "requires_rendering",
    "wait_selectors_for",
]
