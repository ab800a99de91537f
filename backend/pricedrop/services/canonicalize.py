from functools import lru_cache
from urllib.parse import urlsplit, urlunsplit

UNKNOWN_DOMAIN = "unknown"


def is_valid_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def domain_for(url: str | None) -> str:
    """Hostname used to bucket outbound requests, ``unknown`` if it cannot be parsed."""
    if not url:
        return UNKNOWN_DOMAIN
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return UNKNOWN_DOMAIN
    return host.lower() if host else UNKNOWN_DOMAIN


@lru_cache(maxsize=1024)
def canonicalize_url(url: str) -> str:
    parts = urlsplit(url.strip())

    path = parts.path
    if len(path) > 1:
        path = path.rstrip("/")

    netloc = parts.netloc.lower()
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, ""))
