"""Ranked favicon lookup strategies and inline image normalization."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

from vertical_tabs.config import FaviconSettings
from vertical_tabs.http.fetcher import AsyncHttpFetcher
from vertical_tabs.urls import hostname_of

logger = logging.getLogger(__name__)

DEFAULT_ICON_MIME = "image/x-icon"
_MAGIC_MIME: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"RIFF", "image/webp"),
)


class FaviconTier(Protocol):
    """One ranked strategy in the favicon fallback chain."""

    name: str

    async def lookup(self, origin: str) -> str | None:
        """Return an inline ``data:`` URL for the origin, or None on a miss."""


def to_data_url(content: bytes, content_type: str = "") -> str:
    """Encode image bytes as a self-contained ``data:`` URL."""

    mime = _image_mime(content, content_type)
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def _image_mime(content: bytes, content_type: str) -> str:
    declared = content_type.split(";", 1)[0].strip().lower()
    if declared.startswith("image/"):
        return declared
    for magic, mime in _MAGIC_MIME:
        if content.startswith(magic):
            return mime
    if content.lstrip()[:5].lower() in {b"<svg ", b"<?xml"}:
        return "image/svg+xml"
    return DEFAULT_ICON_MIME


async def fetch_inline(fetcher: AsyncHttpFetcher, url: str, *, min_bytes: int) -> str | None:
    """Fetch ``url`` and return it inline; responses under ``min_bytes`` count as a miss."""

    result = await fetcher.fetch(url)
    if not result.is_success:
        logger.debug("Favicon fetch missed %s: %s", url, result.error)
        return None
    if len(result.content) < min_bytes:
        logger.debug("Favicon at %s below %d bytes, ignoring", url, min_bytes)
        return None
    return to_data_url(result.content, result.content_type)


@dataclass(slots=True)
class DirectPathTier:
    """Well-known icon path served by the origin itself."""

    fetcher: AsyncHttpFetcher
    path: str = "/favicon.ico"
    min_bytes: int = 10
    name: str = "direct"

    async def lookup(self, origin: str) -> str | None:
        return await fetch_inline(self.fetcher, f"{origin}{self.path}", min_bytes=self.min_bytes)


@dataclass(slots=True)
class LookupServiceTier:
    """Third-party icon service keyed by hostname.

    The service answers unknown hosts with a tiny generic placeholder, so any
    response under ``min_bytes`` is treated as "no icon".
    """

    fetcher: AsyncHttpFetcher
    url_template: str
    icon_size: int = 32
    min_bytes: int = 100
    name: str = "lookup"

    async def lookup(self, origin: str) -> str | None:
        hostname = hostname_of(origin)
        if not hostname:
            return None
        return await self.lookup_hostname(hostname)

    async def lookup_hostname(self, hostname: str) -> str | None:
        url = self.url_template.format(hostname=hostname, size=self.icon_size)
        return await fetch_inline(self.fetcher, url, min_bytes=self.min_bytes)


def build_tiers(settings: FaviconSettings, fetcher: AsyncHttpFetcher) -> list[FaviconTier]:
    tiers: list[FaviconTier] = []
    if settings.direct_enabled:
        tiers.append(
            DirectPathTier(
                fetcher=fetcher,
                path=settings.direct_path,
                min_bytes=settings.direct_min_bytes,
            ),
        )
    if settings.lookup_enabled:
        tiers.append(
            LookupServiceTier(
                fetcher=fetcher,
                url_template=settings.lookup_url_template,
                icon_size=settings.lookup_icon_size,
                min_bytes=settings.lookup_min_bytes,
            ),
        )
    return tiers
