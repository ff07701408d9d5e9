"""URL classification helpers shared by the aggregator and the favicon cache."""

from __future__ import annotations

from urllib.parse import urlsplit

RESERVED_PREFIXES: tuple[str, ...] = (
    "chrome://",
    "edge://",
    "about:",
    "file://",
    "chrome-extension://",
    "moz-extension://",
    "safari-web-extension://",
)
NETWORK_SCHEMES = frozenset({"http", "https"})
_DEFAULT_PORTS = {"http": 80, "https": 443}


def is_reserved_url(url: str | None) -> bool:
    """Return True for internal pages, local files and extension pages."""

    if not url:
        return False
    lowered = url.strip().lower()
    return lowered.startswith(RESERVED_PREFIXES)


def is_network_url(url: str | None) -> bool:
    return bool(origin_of(url))


def is_inline_icon(ref: str | None) -> bool:
    return ref is not None and ref.startswith("data:")


def origin_of(url: str | None) -> str:
    """Return ``scheme://host[:port]`` for http(s) URLs, empty string otherwise.

    Default ports are dropped, the same way browsers serialize an origin.
    Malformed URLs (bad port, broken IPv6 literal) yield an empty origin.
    """

    if not url:
        return ""
    try:
        parsed = urlsplit(url.strip())
        scheme = parsed.scheme.lower()
        if scheme not in NETWORK_SCHEMES:
            return ""
        hostname = parsed.hostname
        port = parsed.port
    except ValueError:
        return ""
    if not hostname:
        return ""
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def hostname_of(url: str | None) -> str:
    """Lower-cased hostname of any URL, empty string when it has none."""

    if not url:
        return ""
    try:
        return urlsplit(url.strip()).hostname or ""
    except ValueError:
        return ""
