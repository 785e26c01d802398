"""Helpers for deriving domain columns from bookmark URLs."""
from urllib.parse import urlsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def extract_domain(url: str) -> str:
    """Return the hostname of a URL, or the input unchanged if it has none."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return url
    return hostname or url


def normalize_domain(url: str) -> str:
    """
    Build a grouping key: hostname, non-default port, and first path segment.

    ``https://github.com/user/repo`` becomes ``github.com/user`` so that
    bookmarks on shared hosts group by owner. Unparseable URLs are returned as-is.
    """
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return url
    if not hostname:
        return url

    normalized = hostname
    if port is not None and DEFAULT_PORTS.get(parts.scheme) != port:
        normalized += f":{port}"

    segments = [segment for segment in parts.path.split("/") if segment]
    if segments:
        normalized += f"/{segments[0]}"
    return normalized
