"""Per-origin favicon cache with tiered resolution and in-flight deduplication.

Concurrent ``resolve()`` calls for one origin share a single task: the task
is registered in ``_in_flight`` before the caller yields, and it is removed
only once it has settled. Cache entries are monotonic. A resolution task
never moves an entry out of ``RESOLVED`` or ``UNAVAILABLE``; only a
host-supplied icon may overwrite a resolved entry with fresher data.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence

from vertical_tabs.favicon.tiers import FaviconTier, LookupServiceTier, fetch_inline
from vertical_tabs.http.fetcher import AsyncHttpFetcher
from vertical_tabs.models import CacheState, FaviconCacheEntry, WorkItem
from vertical_tabs.urls import is_inline_icon, is_reserved_url

logger = logging.getLogger(__name__)

_UNRESOLVED = FaviconCacheEntry()
HOST_ICON_MIN_BYTES = 10


class FaviconCache:
    """Owns the origin -> entry map and the in-flight task registry."""

    def __init__(
        self,
        *,
        tiers: Sequence[FaviconTier],
        fetcher: AsyncHttpFetcher,
        on_upgrade: Callable[[], None] | None = None,
    ) -> None:
        self.tiers = list(tiers)
        self.fetcher = fetcher
        self.on_upgrade = on_upgrade
        self._entries: dict[str, FaviconCacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._background: set[asyncio.Task[None]] = set()

    def entry(self, origin: str) -> FaviconCacheEntry:
        """Current entry for an origin; read-only, never triggers a fetch."""

        return self._entries.get(origin, _UNRESOLVED)

    def resolved_data(self, origin: str) -> str | None:
        current = self.entry(origin)
        if current.state is CacheState.RESOLVED:
            return current.data
        return None

    def is_unavailable(self, origin: str) -> bool:
        return self.entry(origin).state is CacheState.UNAVAILABLE

    async def resolve(self, origin: str) -> None:
        """Fill the cache for ``origin``, joining any resolution already running."""

        if not origin:
            return
        existing = self._in_flight.get(origin)
        if existing is not None:
            await asyncio.shield(existing)
            return
        if self.entry(origin).is_terminal:
            return

        task = asyncio.get_running_loop().create_task(self._run_tiers(origin))
        self._in_flight[origin] = task
        self._entries[origin] = FaviconCacheEntry(CacheState.IN_FLIGHT)
        task.add_done_callback(lambda done, key=origin: self._forget(key, done))
        await asyncio.shield(task)

    async def resolve_many(self, origins: Iterable[str]) -> None:
        """Resolve origins concurrently; failures are logged, never raised."""

        unique = sorted({origin for origin in origins if origin})
        if not unique:
            return
        results = await asyncio.gather(
            *(self.resolve(origin) for origin in unique),
            return_exceptions=True,
        )
        for origin, result in zip(unique, results, strict=True):
            if isinstance(result, Exception):
                logger.warning("Favicon resolution for %s failed: %s", origin, result)

    def prewarm(self, origin: str, icon_ref: str | None) -> asyncio.Task[None] | None:
        """Seed the cache with a host-reported icon reference.

        External references are stored as-is for a fast first paint and then
        replaced in the background by an inline copy; ``on_upgrade`` fires
        once the inline copy lands. Returns the upgrade task, if any.
        """

        if not origin or not icon_ref or is_reserved_url(icon_ref):
            return None
        self._entries[origin] = FaviconCacheEntry(CacheState.RESOLVED, icon_ref)
        if is_inline_icon(icon_ref):
            return None
        task = asyncio.get_running_loop().create_task(self._upgrade(origin, icon_ref))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def prewarm_items(self, items: Iterable[WorkItem]) -> None:
        """Seed from host icons and resolve every network origin that has none."""

        to_resolve: set[str] = set()
        for item in items:
            origin = item.origin
            if not origin:
                continue
            if item.fav_icon_url and not is_reserved_url(item.fav_icon_url):
                self.prewarm(origin, item.fav_icon_url)
            else:
                to_resolve.add(origin)
        await self.resolve_many(to_resolve)

    async def lookup_hostname(self, hostname: str) -> str | None:
        """Query only the lookup-service tier for a bare hostname."""

        for tier in self.tiers:
            if isinstance(tier, LookupServiceTier):
                data = await tier.lookup_hostname(hostname)
                if data:
                    origin = f"https://{hostname}"
                    if not self.entry(origin).is_terminal:
                        self._entries[origin] = FaviconCacheEntry(CacheState.RESOLVED, data)
                return data
        return None

    async def drain(self) -> None:
        """Wait for background upgrades and in-flight resolutions to settle."""

        pending = [*self._background, *self._in_flight.values()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run_tiers(self, origin: str) -> None:
        for tier in self.tiers:
            try:
                data = await tier.lookup(origin)
            except Exception:  # noqa: BLE001
                logger.warning("Favicon tier %s failed for %s", tier.name, origin, exc_info=True)
                continue
            if data:
                logger.debug("Favicon for %s resolved by %s tier", origin, tier.name)
                self._settle(origin, FaviconCacheEntry(CacheState.RESOLVED, data))
                return
        logger.debug("No favicon found for %s", origin)
        self._settle(origin, FaviconCacheEntry(CacheState.UNAVAILABLE))

    def _settle(self, origin: str, result: FaviconCacheEntry) -> None:
        # A host icon may have landed while the tiers were running.
        if self.entry(origin).is_terminal:
            return
        self._entries[origin] = result

    def _forget(self, origin: str, task: asyncio.Task[None]) -> None:
        if self._in_flight.get(origin) is task:
            del self._in_flight[origin]
        if task.cancelled() and self.entry(origin).state is CacheState.IN_FLIGHT:
            self._entries[origin] = _UNRESOLVED

    async def _upgrade(self, origin: str, icon_ref: str) -> None:
        data = await fetch_inline(self.fetcher, icon_ref, min_bytes=HOST_ICON_MIN_BYTES)
        if data is None:
            return
        current = self.entry(origin)
        # A newer host icon replaced the one we were fetching.
        if current.state is CacheState.RESOLVED and current.data != icon_ref:
            return
        self._entries[origin] = FaviconCacheEntry(CacheState.RESOLVED, data)
        if self.on_upgrade is not None:
            self.on_upgrade()
