from pricedrop.marketplaces.base import MarketplaceProfile

# Noon stalls and resets plain HTTP clients, only a real browser gets through.
NOON = MarketplaceProfile(
    name="noon",
    domains=("noon.com",),
    title_selectors=('h1[data-qa="pdp-name"]', '[data-qa="pdp-name"]'),
    price_selectors=(
        '[data-qa="div-price-now"]',
        '[data-qa="product-price"]',
        ".priceNow",
    ),
    wait_selectors=('[data-qa="div-price-now"]', '[data-qa="product-price"]'),
    placeholder_names=frozenset({"noon", "noon.com", "noon egypt", "noon uae"}),
    requires_rendering=True,
)
