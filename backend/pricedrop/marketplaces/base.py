from dataclasses import dataclass, field

from pricedrop.core.config import settings
from pricedrop.services.canonicalize import domain_for


def get_proxy() -> str | None:
    return settings.OUTBOUND_PROXY or None


@dataclass(frozen=True)
class MarketplaceProfile:
    """
    Selector knowledge for one marketplace.

    Selectors are tried in order, the first one yielding text wins.
    ``requires_rendering`` marks hosts that block plain HTTP clients, so the
    static fetch is skipped and the page goes straight to the browser.
    """

    name: str
    domains: tuple[str, ...]
    title_selectors: tuple[str, ...] = ()
    price_selectors: tuple[str, ...] = ()
    wait_selectors: tuple[str, ...] = ()
    placeholder_names: frozenset[str] = field(default_factory=frozenset)
    requires_rendering: bool = False

    def can_handle(self, url: str) -> bool:
        host = domain_for(url)
        return any(domain in host for domain in self.domains)
