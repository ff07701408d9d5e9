"""Build partitioned tab snapshots from host state and favicon cache state."""

from __future__ import annotations

from collections.abc import Iterable

from vertical_tabs.favicon.cache import FaviconCache
from vertical_tabs.host.base import TabHost
from vertical_tabs.models import IconState, TabSnapshot, WorkItem, WorkItemView
from vertical_tabs.urls import is_network_url, is_reserved_url


def classify_icon(item: WorkItem, cache: FaviconCache) -> IconState:
    """Pick the icon state for one item without triggering any fetch."""

    if is_reserved_url(item.url):
        return IconState.default()
    origin = item.origin
    cached = cache.resolved_data(origin) if origin else None
    if cached:
        return IconState.resolved(cached)
    if item.fav_icon_url and not is_reserved_url(item.fav_icon_url):
        return IconState.resolved(item.fav_icon_url)
    if origin and cache.is_unavailable(origin):
        return IconState.unavailable()
    if is_network_url(item.url):
        return IconState.pending()
    return IconState.unavailable()


def build_snapshot(items: Iterable[WorkItem], cache: FaviconCache) -> TabSnapshot:
    pinned: list[WorkItemView] = []
    regular: list[WorkItemView] = []
    for item in items:
        view = WorkItemView.from_item(item, classify_icon(item, cache))
        (pinned if item.pinned else regular).append(view)
    return TabSnapshot(pinned=tuple(pinned), regular=tuple(regular))


async def snapshot(host: TabHost, cache: FaviconCache) -> TabSnapshot:
    """Query the host once and partition its items, preserving host order."""

    return build_snapshot(await host.list_work_items(), cache)
