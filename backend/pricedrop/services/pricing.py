import re
from decimal import Decimal, InvalidOperation

# first number-like token: digits with thousands commas and one decimal point,
# or a bare fraction such as ".99" that is not glued to a word like "Rs.500"
_NUMBER_TOKEN = re.compile(r"\d[\d,]*(?:\.\d+)?|(?<![A-Za-z.])\.\d+")

# must match the scale of subscriptions.last_seen_price
PRICE_SCALE = 4
PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_SCALE)


def parse_price_to_decimal(price_raw: str | None) -> Decimal | None:
    if not price_raw:
        return None

    # Examples:
    # "$1,299.00"  -> 1299.00
    # "EGP749.29"  -> 749.29
    # "USD 99.99"  -> 99.99
    # "KWD 12.355" -> 12.355
    # "$.99"       -> 0.99
    # "Free"       -> None
    s = price_raw.replace("\u00a0", " ").strip()

    match = _NUMBER_TOKEN.search(s)
    if not match:
        return None

    num = match.group(0).replace(",", "")
    if not num:
        return None

    try:
        value = Decimal(num).quantize(PRICE_QUANTUM)
    except InvalidOperation:
        return None

    if not value.is_finite() or value < 0:
        return None
    return value


def price_digits_are_zero(price_text: str) -> bool:
    """True when the digits of ``price_text`` are missing or add up to zero."""
    digits = re.sub(r"\D", "", price_text or "")
    return not digits or int(digits) == 0


def format_price(value: Decimal | float | None) -> str:
    if value is None:
        return "n/a"
    return f"{Decimal(value):,.2f}"
