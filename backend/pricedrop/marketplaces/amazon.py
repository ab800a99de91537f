from pricedrop.marketplaces.base import MarketplaceProfile

AMAZON = MarketplaceProfile(
    name="amazon",
    domains=("amazon.",),
    title_selectors=("#productTitle",),
    price_selectors=(
        "#corePriceDisplay_desktop_feature_div .a-price .a-offscreen",
        "#corePrice_desktop .a-price .a-offscreen",
        ".priceToPay .a-offscreen",
        "#priceblock_ourprice",
        "#priceblock_dealprice",
        "span.a-price > span.a-offscreen",
        ".a-price .a-offscreen",
    ),
    wait_selectors=(
        "#corePriceDisplay_desktop_feature_div .a-price",
        ".priceToPay",
        ".a-price .a-offscreen",
    ),
    placeholder_names=frozenset(
        {
            "amazon",
            "amazon.com",
            "amazon.eg",
            "amazon.ae",
            "amazon.sa",
            "amazon.com: online shopping",
        }
    ),
)
