"""Process-wide sync service wiring host events, panel commands and pushes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from vertical_tabs.broadcast import Broadcaster
from vertical_tabs.commands import CommandProcessor, Reply
from vertical_tabs.config import Settings
from vertical_tabs.favicon.cache import FaviconCache
from vertical_tabs.favicon.tiers import build_tiers
from vertical_tabs.host.base import DeliveryError, HostError, PanelChannel, TabHost
from vertical_tabs.http.fetcher import AsyncHttpFetcher
from vertical_tabs.models import HostEvent, HostEventKind, WorkItem
from vertical_tabs.protocol import PING, ProtocolError, parse_command
from vertical_tabs.urls import is_reserved_url

logger = logging.getLogger(__name__)


class TabSyncService:
    """Owns the favicon cache, the broadcaster and the command processor."""

    def __init__(
        self,
        *,
        host: TabHost,
        channel: PanelChannel,
        cache: FaviconCache,
        debounce_seconds: float = 0.1,
        follow_up_delays: tuple[float, ...] = (1.0, 3.5),
        surface_check_delay_seconds: float = 2.0,
    ) -> None:
        self.host = host
        self.channel = channel
        self.cache = cache
        self.surface_check_delay_seconds = surface_check_delay_seconds
        self.broadcaster = Broadcaster(
            host=host,
            channel=channel,
            cache=cache,
            debounce_seconds=debounce_seconds,
            follow_up_delays=follow_up_delays,
        )
        self.commands = CommandProcessor(host=host, broadcaster=self.broadcaster, cache=cache)
        cache.on_upgrade = self.broadcaster.schedule_broadcast
        self._event_handlers: dict[HostEventKind, Callable[[HostEvent], None]] = {
            HostEventKind.CREATED: self._on_structure_change,
            HostEventKind.REMOVED: self._on_structure_change,
            HostEventKind.ACTIVATED: self._on_structure_change,
            HostEventKind.MOVED: self._on_structure_change,
            HostEventKind.UPDATED: self._on_updated,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        host: TabHost,
        channel: PanelChannel,
        fetcher: AsyncHttpFetcher | None = None,
    ) -> TabSyncService:
        fetcher = fetcher or AsyncHttpFetcher(
            timeout_seconds=settings.favicon.request_timeout_seconds,
            max_retries=settings.favicon.max_retries,
        )
        cache = FaviconCache(tiers=build_tiers(settings.favicon, fetcher), fetcher=fetcher)
        return cls(
            host=host,
            channel=channel,
            cache=cache,
            debounce_seconds=settings.broadcast.debounce_seconds,
            follow_up_delays=settings.broadcast.follow_up_delays,
            surface_check_delay_seconds=settings.broadcast.surface_check_delay_seconds,
        )

    async def start(self, *, check_surfaces: bool = True, prewarm: bool = True) -> None:
        """Prewarm favicons, push a first snapshot and re-inject dead surfaces."""

        try:
            items = await self.host.list_work_items()
        except HostError as exc:
            logger.warning("Startup listing failed, skipping prewarm: %s", exc)
            items = []
        if prewarm:
            await self.cache.prewarm_items(items)
        await self.broadcaster.broadcast_now()
        if check_surfaces:
            await self.ensure_surfaces(items)
            self.broadcaster.schedule_follow_ups((self.surface_check_delay_seconds,))

    async def ensure_surfaces(self, items: list[WorkItem]) -> list[int]:
        """Reload tabs whose panel surface does not answer ``PING``."""

        reloaded: list[int] = []
        for item in items:
            if not item.url or is_reserved_url(item.url):
                continue
            if await self._surface_alive(item.id):
                continue
            try:
                await self.host.reload(item.id)
            except HostError as exc:
                logger.debug("Could not reload tab %s: %s", item.id, exc)
                continue
            reloaded.append(item.id)
        if reloaded:
            logger.info("Reloaded %d tab(s) without a panel surface", len(reloaded))
        return reloaded

    def handle_host_event(self, event: HostEvent) -> None:
        self._event_handlers[event.kind](event)

    async def handle_message(
        self,
        payload: dict[str, Any],
        sender: WorkItem | None = None,
    ) -> Reply:
        """Parse and execute one panel message; malformed messages are dropped."""

        try:
            command = parse_command(payload)
        except ProtocolError as exc:
            logger.warning("Dropping panel message: %s", exc)
            return None
        return await self.commands.handle(command, sender)

    async def drain(self) -> None:
        await self.broadcaster.drain()

    async def close(self) -> None:
        await self.drain()
        self.broadcaster.close()
        await self.cache.fetcher.aclose()

    def _on_structure_change(self, _event: HostEvent) -> None:
        self.broadcaster.schedule_broadcast()

    def _on_updated(self, event: HostEvent) -> None:
        icon_ref = event.fav_icon_url
        if icon_ref and event.item is not None and event.item.url:
            # Icon arrival is rare and latency-sensitive: skip the debounce.
            self.cache.prewarm(event.item.origin, icon_ref)
            self.broadcaster.broadcast_soon()
            self.broadcaster.schedule_follow_ups()
            return
        self.broadcaster.schedule_broadcast()
        if event.load_complete:
            self.broadcaster.schedule_follow_ups()

    async def _surface_alive(self, tab_id: int) -> bool:
        try:
            reply = await self.channel.send(tab_id, {"type": PING})
        except DeliveryError:
            return False
        return bool(reply and reply.get("pong"))
