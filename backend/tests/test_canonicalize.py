import pytest

from pricedrop.services.canonicalize import UNKNOWN_DOMAIN, canonicalize_url, domain_for, is_valid_url


@pytest.mark.parametrize(
    "url, valid",
    [
        ("https://www.amazon.eg/dp/B0CHX1W1XY", True),
        ("http://shop.example.com/item/42", True),
        ("ftp://files.example.com/price.csv", False),
        ("not a url", False),
        ("http://", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_url(url, valid):
    assert is_valid_url(url) is valid


def test_domain_for_lowercases_host():
    assert domain_for("https://WWW.Amazon.EG/dp/1") == "www.amazon.eg"
    assert domain_for("https://shop.example.com:8443/a") == "shop.example.com"


def test_domain_for_unparseable_url_uses_unknown_bucket():
    assert domain_for("garbage") == UNKNOWN_DOMAIN
    assert domain_for(None) == UNKNOWN_DOMAIN


def test_canonicalize_url():
    assert (
        canonicalize_url("HTTPS://Shop.Example.com/item/42/#reviews")
        == "https://shop.example.com/item/42"
    )
    assert canonicalize_url("https://shop.example.com/p?id=1") == "https://shop.example.com/p?id=1"
    assert canonicalize_url("https://shop.example.com/") == "https://shop.example.com/"
