"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx
import pytest

from vertical_tabs.favicon import DirectPathTier, FaviconCache, LookupServiceTier
from vertical_tabs.http.fetcher import AsyncHttpFetcher

LOOKUP_TEMPLATE = "https://icons.test/s2/favicons?domain={hostname}&sz={size}"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x01" * 200


def lookup_url(hostname: str, size: int = 32) -> str:
    return LOOKUP_TEMPLATE.format(hostname=hostname, size=size)


class IconServer:
    """Scripted favicon responses keyed by URL; unknown URLs answer 404."""

    def __init__(self, *, delay: float = 0.0) -> None:
        self.delay = delay
        self.routes: dict[str, tuple[int, bytes, str] | type[Exception]] = {}
        self.requests: list[str] = []

    def icon(self, url: str, content: bytes = PNG_BYTES, content_type: str = "image/png") -> None:
        self.routes[url] = (200, content, content_type)

    def fail(self, url: str, error: type[Exception] = httpx.ConnectError) -> None:
        self.routes[url] = error

    async def handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404)
        if isinstance(route, type):
            raise route("connection refused", request=request)
        status, content, content_type = route
        return httpx.Response(status, content=content, headers={"content-type": content_type})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture()
def icon_server() -> IconServer:
    return IconServer()


@pytest.fixture()
def make_cache(icon_server: IconServer) -> Callable[..., FaviconCache]:
    """Build a two-tier cache on top of the scripted icon server.

    Must be called inside a running event loop.
    """

    def _make(on_upgrade: Callable[[], None] | None = None) -> FaviconCache:
        fetcher = AsyncHttpFetcher(transport=icon_server.transport())
        return FaviconCache(
            tiers=[
                DirectPathTier(fetcher=fetcher),
                LookupServiceTier(fetcher=fetcher, url_template=LOOKUP_TEMPLATE),
            ],
            fetcher=fetcher,
            on_upgrade=on_upgrade,
        )

    return _make


@pytest.fixture(name="lookup_url")
def lookup_url_fixture() -> Callable[..., str]:
    return lookup_url


@pytest.fixture()
def png_bytes() -> bytes:
    return PNG_BYTES
