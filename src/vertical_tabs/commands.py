"""Panel command handlers: host mutation followed by an immediate resync."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from vertical_tabs.broadcast import Broadcaster
from vertical_tabs.favicon.cache import FaviconCache
from vertical_tabs.host.base import HostError, StaleTabError, TabHost
from vertical_tabs.models import WorkItem
from vertical_tabs.protocol import (
    CloseTab,
    Command,
    FetchFavicon,
    MoveTab,
    PinTab,
    Ping,
    ReloadSite,
    SwitchTab,
    pong,
)

logger = logging.getLogger(__name__)

Reply = dict[str, Any] | None
Handler = Callable[[Any, WorkItem | None], Awaitable[Reply]]


def absolute_index(
    *,
    pinned_count: int,
    regular_count: int,
    target_index: int | None,
    to_pinned: bool,
) -> int:
    """Map an index inside one partition to an absolute host position.

    The index is clamped to the destination partition, and regular positions
    are offset by the pinned partition because pinned items always come first.
    """

    partition_length = pinned_count if to_pinned else regular_count
    clamped = max(0, min(target_index or 0, partition_length - 1))
    if to_pinned:
        return clamped
    return pinned_count + clamped


class CommandProcessor:
    """Executes panel commands against the host through one dispatch table."""

    def __init__(
        self,
        *,
        host: TabHost,
        broadcaster: Broadcaster,
        cache: FaviconCache,
    ) -> None:
        self.host = host
        self.broadcaster = broadcaster
        self.cache = cache
        self._handlers: dict[type, Handler] = {
            Ping: self._ping,
            SwitchTab: self._switch_tab,
            PinTab: self._pin_tab,
            CloseTab: self._close_tab,
            MoveTab: self._move_tab,
            ReloadSite: self._reload_site,
            FetchFavicon: self._fetch_favicon,
        }

    async def handle(self, command: Command, sender: WorkItem | None = None) -> Reply:
        """Run one command; host failures are logged and left to the next sync cycle."""

        handler = self._handlers[type(command)]
        try:
            return await handler(command, sender)
        except HostError as exc:
            logger.warning("%s failed, host call rejected: %s", type(command).__name__, exc)
            return None

    async def _ping(self, _command: Ping, _sender: WorkItem | None) -> Reply:
        return pong()

    async def _switch_tab(self, command: SwitchTab, sender: WorkItem | None) -> Reply:
        try:
            await self.host.activate(command.tab_id)
        except StaleTabError:
            if not command.url:
                logger.debug("Cannot activate stale tab %s without URL", command.tab_id)
                return None
            match = await self._find_by_url(command.url, sender)
            if match is None:
                logger.debug("No tab matches %s for stale id %s", command.url, command.tab_id)
                return None
            try:
                await self.host.activate(match.id)
            except StaleTabError:
                logger.debug("Tab %s vanished before activation", match.id)
                return None
        await self.broadcaster.broadcast_now()
        return None

    async def _pin_tab(self, command: PinTab, _sender: WorkItem | None) -> Reply:
        try:
            await self.host.set_pinned(command.tab_id, command.pin)
        except StaleTabError:
            logger.debug("Ignoring pin for stale tab %s", command.tab_id)
            return None
        await self.broadcaster.broadcast_now()
        return None

    async def _close_tab(self, command: CloseTab, _sender: WorkItem | None) -> Reply:
        try:
            await self.host.close(command.tab_id)
        except StaleTabError:
            logger.debug("Ignoring close for stale tab %s", command.tab_id)
            return None
        await self.broadcaster.broadcast_now()
        return None

    async def _move_tab(self, command: MoveTab, _sender: WorkItem | None) -> Reply:
        try:
            if command.pin is not None:
                await self.host.set_pinned(command.tab_id, command.pin)
            window_id = await self.host.current_window_id()
            items = await self.host.list_work_items(window_id)
            current = next((item for item in items if item.id == command.tab_id), None)
            if current is None:
                logger.debug("Tab %s not in current window, move skipped", command.tab_id)
                return None
            to_pinned = command.pin if command.pin is not None else current.pinned
            position = absolute_index(
                pinned_count=sum(1 for item in items if item.pinned),
                regular_count=sum(1 for item in items if not item.pinned),
                target_index=command.new_index,
                to_pinned=to_pinned,
            )
            await self.host.move(command.tab_id, position)
        except StaleTabError:
            logger.debug("Ignoring move for stale tab %s", command.tab_id)
            return None
        await self.broadcaster.broadcast_now()
        return None

    async def _reload_site(self, command: ReloadSite, _sender: WorkItem | None) -> Reply:
        window_id = await self.host.current_window_id()
        hostname = command.hostname.lower()
        for item in await self.host.list_work_items(window_id):
            if item.hostname != hostname:
                continue
            try:
                await self.host.reload(item.id)
            except StaleTabError:
                logger.debug("Tab %s closed before reload", item.id)
        await self.broadcaster.broadcast_now()
        return None

    async def _fetch_favicon(self, command: FetchFavicon, _sender: WorkItem | None) -> Reply:
        return {"dataUrl": await self.cache.lookup_hostname(command.hostname)}

    async def _find_by_url(self, url: str, sender: WorkItem | None) -> WorkItem | None:
        window_id = sender.window_id if sender is not None else await self.host.current_window_id()
        items = await self.host.list_work_items(window_id)
        return next((item for item in items if item.url == url), None)
