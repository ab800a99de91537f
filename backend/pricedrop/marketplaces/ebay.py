from pricedrop.marketplaces.base import MarketplaceProfile

EBAY = MarketplaceProfile(
    name="ebay",
    domains=("ebay.",),
    title_selectors=(".x-item-title__mainTitle", "#itemTitle", ".it-ttl"),
    price_selectors=(
        ".x-price-primary .ux-textspans",
        ".x-price-primary",
        "#prcIsum",
        "#mm-saleDscPrc",
        ".display-price",
        ".notranslate",
        ".ui-display-price",
    ),
    wait_selectors=(".x-price-primary", "#prcIsum"),
    placeholder_names=frozenset({"ebay", "ebay.com", "electronics, cars, fashion"}),
)
